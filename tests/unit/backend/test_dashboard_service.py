"""
Dashboard Service Unit Tests

The report pipeline against a mocked PAR Brink: validation, fan-out,
partial failure and the end-to-end hourly numbers.
"""

from datetime import date

import httpx
import pytest

from backend.schemas.report import ReportRequest
from backend.services import cache
from backend.services.dashboard import DashboardService, InvalidReportRequest
from backend.services.locations import InvalidLocationToken
from integrations.pos.brink import RequestThrottle
from integrations.timezone import TimezoneResolver
from tests.factories import (
    ACCESS_TOKEN,
    DENVER_TOKEN,
    BrinkTransport,
    employee_xml,
    order_xml,
    payment_xml,
    punch_xml,
    shift_xml,
    soap_response,
    time_service_transport,
    utc,
)

# Local 20:00 MDT on 2024-06-01
NOW = utc(2024, 6, 2, 2)


def scenario_responses() -> dict[str, object]:
    """One 42.50 order at 18:00 local and one 17:00-19:00 shift at 15/hour."""
    return {
        "GetOrders": soap_response(
            "GetOrders",
            "Orders",
            [order_xml("501", "42.50", "2024-06-02T00:00:00Z")],
        ),
        "GetShifts": soap_response(
            "GetShifts",
            "Shifts",
            [shift_xml("7", "2024-06-01T23:00:00Z", 120, "15.00")],
        ),
        "GetEmployees": soap_response("GetEmployees", "Employees", [employee_xml("7", pay_rate="15.00")]),
    }


@pytest.fixture
def make_service(locations):
    def factory(fake: BrinkTransport) -> DashboardService:
        return DashboardService(
            locations=locations,
            resolver=TimezoneResolver(transport=time_service_transport(None), cutoff_hour=5),
            throttle=RequestThrottle(4),
            transport=fake.transport,
            cutoff_hour=5,
        )

    return factory


def request(**overrides) -> ReportRequest:
    values = {"location_token": DENVER_TOKEN, "access_token": ACCESS_TOKEN}
    values.update(overrides)
    return ReportRequest(**values)


def hour(rows, h):
    return next(row for row in rows if row.hour == h)


class TestBuildDashboard:
    @pytest.mark.asyncio
    async def test_end_to_end_scenario(self, make_service):
        fake = BrinkTransport(scenario_responses())
        service = make_service(fake)

        data = await service.build_dashboard(request(), now=NOW)

        assert data.location == "Castle Rock"
        assert data.location_id == "109"
        assert data.business_date == date(2024, 6, 1)
        assert sorted(fake.operations()) == ["GetEmployees", "GetOrders", "GetShifts"]

        labor_17 = hour(data.hourly_labor, 17)
        assert (labor_17.labor_hours, labor_17.labor_cost, labor_17.employees_working) == (1.0, 15.0, 1)
        assert hour(data.hourly_sales, 17).sales == 0

        sales_18 = hour(data.hourly_sales, 18)
        labor_18 = hour(data.hourly_labor, 18)
        assert (sales_18.sales, sales_18.orders, sales_18.guests, sales_18.guest_average) == (42.5, 1, 1, 42.5)
        assert (labor_18.labor_hours, labor_18.labor_cost, labor_18.employees_working) == (1.0, 15.0, 1)

        assert data.total_labor_cost == 30.0
        assert data.total_labor_hours == 2.0
        assert data.labor_percentage == 70.59
        assert data.totals.labor_percentage == 70.59
        assert data.overall_guest_average == 42.5
        assert data.degraded_sources == []

    @pytest.mark.asyncio
    async def test_buckets_follow_business_day_order(self, make_service):
        data = await make_service(BrinkTransport(scenario_responses())).build_dashboard(request(), now=NOW)

        assert [row.hour for row in data.hourly_sales][:2] == [5, 6]
        assert len(data.hourly_labor) == 24

    @pytest.mark.asyncio
    async def test_failed_source_degrades_without_failing(self, make_service):
        responses = scenario_responses()
        responses["GetShifts"] = soap_response("GetShifts", result_code=5, message="Labor service error")
        service = make_service(BrinkTransport(responses))

        data = await service.build_dashboard(request(), now=NOW)

        assert data.degraded_sources == ["shifts"]
        assert data.total_labor_hours == 0
        assert data.labor_percentage == 0

    @pytest.mark.asyncio
    async def test_unreachable_source_reported(self, make_service):
        responses = scenario_responses()
        responses["GetEmployees"] = httpx.ConnectTimeout("timed out")
        service = make_service(BrinkTransport(responses))

        data = await service.build_dashboard(request(), now=NOW)

        assert data.degraded_sources == ["employees"]
        # The shift carries its own rate, so cost survives a missing roster
        assert data.total_labor_cost == 30.0

    @pytest.mark.asyncio
    async def test_past_business_date_counts_every_hour(self, make_service):
        responses = scenario_responses()
        # 22:15 local for four hours, crossing midnight
        responses["GetShifts"] = soap_response(
            "GetShifts", "Shifts", [shift_xml("7", "2024-05-31T04:15:00Z", 240, "10.00")]
        )
        service = make_service(BrinkTransport(responses))

        data = await service.build_dashboard(request(business_date=date(2024, 5, 30)), now=NOW)

        assert data.business_date == date(2024, 5, 30)
        assert data.total_labor_hours == 4.0
        assert hour(data.hourly_labor, 2).labor_hours == 0.8

    @pytest.mark.asyncio
    async def test_current_day_drops_future_hours(self, make_service):
        responses = scenario_responses()
        # 19:30 local for two hours: 19, 20, 21 with "now" at 20:00
        responses["GetShifts"] = soap_response(
            "GetShifts", "Shifts", [shift_xml("7", "2024-06-02T01:30:00Z", 120, "10.00")]
        )
        service = make_service(BrinkTransport(responses))

        data = await service.build_dashboard(request(), now=NOW)

        assert hour(data.hourly_labor, 21).labor_hours == 0
        assert hour(data.hourly_labor, 20).labor_hours == pytest.approx(0.67)

    @pytest.mark.asyncio
    async def test_unknown_zone_degrades_to_utc(self, make_service):
        service = make_service(BrinkTransport(scenario_responses()))

        data = await service.build_dashboard(request(location_token="bad-zone-token"), now=NOW)

        assert "timezone" in data.degraded_sources
        # The 00:00 UTC order lands in the UTC midnight bucket
        assert hour(data.hourly_sales, 0).sales == 42.5

    @pytest.mark.asyncio
    async def test_zone_known_only_to_time_service_degrades(self, locations):
        answer = {
            "datetime": "2024-06-01T20:00:00.000000-06:00",
            "raw_offset": -25200,
            "dst_offset": 3600,
            "dst": True,
        }
        service = DashboardService(
            locations=locations,
            resolver=TimezoneResolver(transport=time_service_transport(answer), cutoff_hour=5),
            throttle=RequestThrottle(4),
            transport=BrinkTransport(scenario_responses()).transport,
            cutoff_hour=5,
        )

        data = await service.build_dashboard(request(location_token="bad-zone-token"))
        await service.close()

        assert "timezone" in data.degraded_sources


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [{"location_token": None}, {"access_token": ""}, {"location_token": "  "}],
    )
    async def test_missing_tokens_fail_before_upstream(self, make_service, overrides):
        fake = BrinkTransport(scenario_responses())
        service = make_service(fake)

        with pytest.raises(InvalidReportRequest):
            await service.build_dashboard(request(**overrides), now=NOW)

        assert fake.requests == []

    @pytest.mark.asyncio
    async def test_unknown_location_token(self, make_service):
        fake = BrinkTransport(scenario_responses())

        with pytest.raises(InvalidLocationToken, match="Invalid location token"):
            await make_service(fake).build_dashboard(request(location_token="nope"), now=NOW)

        assert fake.requests == []


class TestOtherReports:
    @pytest.mark.asyncio
    async def test_sales_summary(self, make_service):
        fake = BrinkTransport(scenario_responses())

        summary = await make_service(fake).sales_summary(request(), now=NOW)

        assert fake.operations() == ["GetOrders"]
        assert summary.total_sales == 42.5
        assert summary.order_count == 1
        assert summary.average_order == 42.5

    @pytest.mark.asyncio
    async def test_tips_report(self, make_service):
        payments = payment_xml("p1", "42.50", tip="6.00", employee_id="7")
        responses = {
            "GetOrders": soap_response(
                "GetOrders", "Orders", [order_xml("501", "42.50", "2024-06-02T00:00:00Z", payments=payments)]
            )
        }

        report = await make_service(BrinkTransport(responses)).tips_report(request(), now=NOW)

        assert report.total_tips == 6.0
        assert report.tip_count == 1
        assert report.tips_by_employee == {"7": 6.0}
        assert report.tips[0].payment_id == "p1"

    @pytest.mark.asyncio
    async def test_labor_shifts(self, make_service):
        report = await make_service(BrinkTransport(scenario_responses())).labor_shifts(request(), now=NOW)

        assert len(report.shifts) == 1
        line = report.shifts[0]
        assert line.employee_name == "Sam Rivera"
        assert (line.hours_worked, line.pay_rate, line.labor_cost) == (2.0, 15.0, 30.0)
        assert report.total_labor_cost == 30.0

    @pytest.mark.asyncio
    async def test_employee_roster(self, make_service):
        roster = await make_service(BrinkTransport(scenario_responses())).employee_roster(request())

        assert roster.count == 1
        assert roster.employees[0].pay_rate == 15.0

    @pytest.mark.asyncio
    async def test_cached_roster_skips_upstream(self, make_service, monkeypatch):
        cached = [{"employee_id": "7", "first_name": "Cached", "last_name": "Person", "pay_rate": "15.00"}]

        async def fake_get_cached(key):
            assert key == "brink:employees:109"
            return cached

        monkeypatch.setattr(cache, "get_cached", fake_get_cached)
        fake = BrinkTransport(scenario_responses())

        roster = await make_service(fake).employee_roster(request())

        assert fake.requests == []
        assert roster.employees[0].first_name == "Cached"

    @pytest.mark.asyncio
    async def test_clocked_in(self, make_service):
        responses = {
            "GetEmployees": soap_response(
                "GetEmployees", "Employees", [employee_xml("7"), employee_xml("8", first_name="Ana")]
            ),
            "GetPunchDetailsByBusinessDate": soap_response(
                "GetPunchDetailsByBusinessDate",
                "PunchDetails",
                [
                    punch_xml("7", "In", "2024-06-01T16:00:00"),
                    punch_xml("8", "In", "2024-06-01T09:00:00"),
                    punch_xml("8", "Out", "2024-06-01T15:00:00"),
                ],
            ),
        }
        fake = BrinkTransport(responses)

        report = await make_service(fake).clocked_in(request(), now=NOW)

        assert report.count == 1
        assert report.employees[0].employee_id == "7"
        assert report.employees[0].duration_minutes == 240
        punch_request = next(r for r in fake.requests if r.headers["SOAPAction"].endswith("ByBusinessDate"))
        assert b"<v2:timezoneOffsetMinutes>-360</v2:timezoneOffsetMinutes>" in punch_request.content

    @pytest.mark.asyncio
    async def test_all_location_reports(self, make_service):
        report = await make_service(BrinkTransport(scenario_responses())).all_location_reports(
            ACCESS_TOKEN, now=NOW
        )

        assert report.succeeded == 2
        assert report.failed == 0
        assert {entry.location for entry in report.locations} == {"Castle Rock", "Nowhere"}

    @pytest.mark.asyncio
    async def test_all_location_reports_requires_token(self, make_service):
        with pytest.raises(InvalidReportRequest):
            await make_service(BrinkTransport()).all_location_reports(None)

    @pytest.mark.asyncio
    async def test_crashing_location_is_recorded_as_failed(self, make_service, monkeypatch):
        service = make_service(BrinkTransport(scenario_responses()))
        build_dashboard = service.build_dashboard

        async def flaky_build(report_request, now=None):
            if report_request.location_token == "bad-zone-token":
                raise RuntimeError("boom")
            return await build_dashboard(report_request, now)

        monkeypatch.setattr(service, "build_dashboard", flaky_build)

        report = await service.all_location_reports(ACCESS_TOKEN, now=NOW)

        assert (report.succeeded, report.failed) == (1, 1)
        failed = next(entry for entry in report.locations if not entry.success)
        assert failed.location == "Nowhere"
        assert failed.error == "boom"
        assert failed.dashboard is None
