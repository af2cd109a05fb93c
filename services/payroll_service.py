import logging
from datetime import date
from typing import Dict, List, Optional

from config.settings import ROTA_SETTINGS, RotaSettings
from database.supabase_client import get_supabase
from models.payroll import CompensationProfile, MonthlyPayPreview, PayRecord, PublicHoliday, RecurringBonus
from models.requests import LeaveRecord
from modules.rota.dates import add_months, month_bounds
from modules.rota.payroll import forecast_pay
from modules.rota.pipeline import resolve_schedule
from services.rota_service import RotaService, parse_rows

logger = logging.getLogger(__name__)


class PayrollService:
    def __init__(self, supabase=None, settings: RotaSettings = ROTA_SETTINGS):
        self.supabase = supabase or get_supabase()
        self.settings = settings
        self.rota = RotaService(self.supabase)

    async def get_profile(self, staff_id: str) -> Optional[CompensationProfile]:
        try:
            result = self.supabase.table("hr_profiles") \
                .select("*") \
                .eq("user_id", staff_id) \
                .execute()
        except Exception as e:
            logger.error(f"Get HR profile error: {e}", exc_info=True)
            raise e

        profiles = parse_rows(result.data or [], CompensationProfile.model_validate, "hr profile")
        return profiles[0] if profiles else None

    async def get_public_holidays(self, start_date: date, end_date: date) -> Dict[date, str]:
        result = self.supabase.table("public_holidays") \
            .select("*") \
            .gte("date", start_date.isoformat()) \
            .lte("date", end_date.isoformat()) \
            .execute()
        holidays = parse_rows(result.data or [], PublicHoliday.model_validate, "public holiday")
        return {h.date: h.name for h in holidays}

    async def get_forecast(self, staff_id: str, today: date) -> List[MonthlyPayPreview]:
        """Twelve months of projected pay starting with today's month"""
        profile = await self.get_profile(staff_id)
        if profile is None or not profile.base_salary:
            logger.info(f"No base salary on file for {staff_id}, returning empty forecast")
            return []

        window_start = today.replace(day=1)
        _, window_end = month_bounds(add_months(today, self.settings.forecast_months - 1))

        try:
            snapshot = await self.rota.load_snapshot(window_start, window_end, subject_id=staff_id)
            resolved = resolve_schedule(snapshot, window_start, window_end)

            bonuses = self.supabase.table("recurring_bonuses") \
                .select("*") \
                .eq("user_id", staff_id) \
                .lte("start_date", window_end.isoformat()) \
                .execute()
            pay_records = self.supabase.table("staff_pay_records") \
                .select("*") \
                .eq("user_id", staff_id) \
                .gte("pay_date", window_start.isoformat()) \
                .lte("pay_date", window_end.isoformat()) \
                .execute()
            # The rollover month looks back over the whole closed leave year
            leave = self.supabase.table("staff_holidays") \
                .select("*") \
                .eq("user_id", staff_id) \
                .eq("status", "approved") \
                .execute()
            holidays = await self.get_public_holidays(window_start, window_end)

        except Exception as e:
            logger.error(f"Load payroll inputs error for {staff_id}: {e}", exc_info=True)
            raise e

        return forecast_pay(
            profile,
            resolved.timeline,
            snapshot.requests,
            parse_rows(bonuses.data or [], RecurringBonus.model_validate, "recurring bonus"),
            parse_rows(pay_records.data or [], PayRecord.model_validate, "pay record"),
            holidays,
            parse_rows(leave.data or [], LeaveRecord.model_validate, "leave"),
            now=today,
            settings=self.settings,
        )
