from datetime import datetime
from zoneinfo import ZoneInfo

from deskflow.services.business_hours import BusinessHours

MX = ZoneInfo("America/Mexico_City")


def hours_at(moment: datetime) -> BusinessHours:
    return BusinessHours(
        tz_name="America/Mexico_City",
        open_hour=9,
        close_hour=17,
        weekdays={0, 1, 2, 3, 4},
        clock=lambda: moment,
    )


class TestBusinessHours:
    def test_open_on_weekday_morning(self):
        assert hours_at(datetime(2026, 10, 19, 10, 0, tzinfo=MX)).is_open_now()

    def test_closed_at_closing_hour(self):
        assert not hours_at(datetime(2026, 10, 19, 17, 0, tzinfo=MX)).is_open_now()

    def test_closed_on_saturday(self):
        assert not hours_at(datetime(2026, 10, 24, 11, 0, tzinfo=MX)).is_open_now()

    def test_next_open_same_day_before_opening(self):
        hours = hours_at(datetime(2026, 10, 20, 7, 30, tzinfo=MX))
        assert hours.next_open_time() == datetime(2026, 10, 20, 9, 0, tzinfo=MX)

    def test_next_open_after_friday_close_is_monday(self):
        hours = hours_at(datetime(2026, 10, 23, 18, 0, tzinfo=MX))
        assert hours.next_open_time() == datetime(2026, 10, 26, 9, 0, tzinfo=MX)

    def test_next_open_when_open_is_now(self):
        moment = datetime(2026, 10, 19, 10, 0, tzinfo=MX)
        assert hours_at(moment).next_open_time() == moment

    def test_naive_clock_is_localised(self):
        assert hours_at(datetime(2026, 10, 19, 10, 0)).is_open_now()

    def test_utc_clock_is_converted(self):
        # 15:00 UTC is 09:00 in Mexico City.
        moment = datetime(2026, 10, 19, 15, 0, tzinfo=ZoneInfo("UTC"))
        assert hours_at(moment).is_open_now()

    def test_describe_next_open(self):
        hours = hours_at(datetime(2026, 10, 24, 11, 0, tzinfo=MX))
        assert hours.describe_next_open() == "lunes 26/10 a las 09:00"
