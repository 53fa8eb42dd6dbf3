"""Loads the payroll configuration used by one run."""

from __future__ import annotations

import logging
from dataclasses import fields, replace
from typing import TYPE_CHECKING

from sqlalchemy import select

from payroll_batch.calculators.types import PayrollSettings
from payroll_batch.models import PayrollSettingsRecord, SystemSetting

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

HOLIDAY_PAY_SETTING = "paid_public_holidays_enabled"
_TRUTHY = {"true", "1", "yes", "on"}


class SettingsService:
    """Reads stored settings into an immutable PayrollSettings value.

    Settings are read fresh for every run and never cached between runs.
    Anything not stored falls back to the PayrollSettings defaults.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def load(self) -> PayrollSettings:
        settings = PayrollSettings()

        record = await self._latest_record()
        if record is None:
            logger.info("No stored payroll settings; using defaults")
        else:
            overrides = {
                f.name: getattr(record, f.name)
                for f in fields(PayrollSettings)
                if hasattr(record, f.name) and getattr(record, f.name) is not None
            }
            settings = replace(settings, **overrides)

        holiday_flag = await self.get_system_setting(HOLIDAY_PAY_SETTING)
        if holiday_flag is not None:
            settings = replace(
                settings,
                holiday_pay_enabled=holiday_flag.strip().lower() in _TRUTHY,
            )

        return settings

    async def get_system_setting(self, name: str) -> str | None:
        result = await self.session.execute(
            select(SystemSetting.setting_value).where(SystemSetting.setting_name == name)
        )
        return result.scalar_one_or_none()

    async def _latest_record(self) -> PayrollSettingsRecord | None:
        result = await self.session.execute(
            select(PayrollSettingsRecord)
            .order_by(PayrollSettingsRecord.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
