# Overview: Pytest coverage for the trip cost engine and toll estimators.

from decimal import Decimal

import pytest

from routewise.errors import ValidationError
from routewise.services.costing import (
    CostInputs,
    DriverPerDiem,
    FixedTollEstimator,
    HondurasTollEstimator,
    HondurasTollFees,
    VehicleSpec,
    calculate_costs,
    combine_costs,
    derive_trip_days,
    efficiency_km_per_gallon,
    fuel_and_refueling,
    fuel_price_per_gallon,
)

COASTER = VehicleSpec(
    fuel_efficiency=Decimal("10"),
    fuel_capacity=Decimal("100"),
    cost_per_distance=Decimal("5"),
    cost_per_day=Decimal("2000"),
)
PER_DIEM = DriverPerDiem(
    meal_cost_per_day=Decimal("150"),
    hotel_cost_per_night=Decimal("500"),
    incentive_per_day=Decimal("200"),
)


def _inputs(**overrides):
    fields = dict(
        distance_km=Decimal("250"),
        vehicle=COASTER,
        fuel_price=Decimal("100"),
        per_diem=PER_DIEM,
        total_time_minutes=240,
    )
    fields.update(overrides)
    return CostInputs(**fields)


class TestCombineCosts:
    COMPONENTS = dict(
        fuel_cost=500,
        refueling_cost=50,
        driver_meals_cost=150,
        driver_lodging_cost=0,
        driver_incentive_cost=200,
        vehicle_distance_cost=1250,
        vehicle_daily_cost=2000,
        toll_cost=300,
    )

    def test_all_included(self):
        assert combine_costs(**self.COMPONENTS) == Decimal("4450")

    def test_vehicle_costs_always_count(self):
        total = combine_costs(**self.COMPONENTS, include_fuel=False, include_meals=False, include_tolls=False)
        assert total == Decimal("3250")

    def test_flags_drop_their_groups(self):
        assert combine_costs(**self.COMPONENTS, include_fuel=False) == Decimal("3900")
        assert combine_costs(**self.COMPONENTS, include_meals=False) == Decimal("4100")
        assert combine_costs(**self.COMPONENTS, include_tolls=False) == Decimal("4150")


class TestUnits:
    def test_fuel_price_per_litre(self):
        assert fuel_price_per_gallon(Decimal("25"), "l") == Decimal("25") * Decimal("3.78541")

    def test_efficiency_units(self):
        assert efficiency_km_per_gallon(Decimal("10"), "km/gal") == Decimal("10")
        assert efficiency_km_per_gallon(Decimal("2"), "km/l") == Decimal("7.57082")
        assert efficiency_km_per_gallon(Decimal("10"), "mpg") == Decimal("16.09344")

    def test_unknown_unit_rejected(self):
        with pytest.raises(ValidationError):
            efficiency_km_per_gallon(10, "furlongs")


class TestTripDays:
    @pytest.mark.parametrize(
        "minutes,days",
        [(0, 1), (None, 1), (240, 1), (480, 1), (481, 2), (960, 2), (1500, 4)],
    )
    def test_eight_hour_days(self, minutes, days):
        assert derive_trip_days(minutes) == days


class TestFuel:
    def test_no_refuel_within_one_tank(self):
        fuel, refuel = fuel_and_refueling(Decimal("250"), COASTER, Decimal("100"))
        assert fuel == Decimal("2500")
        assert refuel == Decimal("0")

    def test_refuel_stops(self):
        # Range 1000 km; 2500 km -> floor(2.5) - 1 = 1 stop of a full tank
        fuel, refuel = fuel_and_refueling(Decimal("2500"), COASTER, Decimal("100"))
        assert fuel == Decimal("25000")
        assert refuel == Decimal("10000")

    def test_zero_efficiency_rejected(self):
        with pytest.raises(ValidationError):
            fuel_and_refueling(Decimal("10"), VehicleSpec(fuel_efficiency=Decimal("0")), Decimal("100"))


class TestCalculateCosts:
    def test_single_day_breakdown(self):
        result = calculate_costs(_inputs())
        assert result.days == 1
        assert result.fuel_cost == Decimal("2500")
        assert result.driver_meals_cost == Decimal("150")
        assert result.driver_lodging_cost == Decimal("0")
        assert result.driver_incentive_cost == Decimal("200")
        assert result.vehicle_distance_cost == Decimal("1250")
        assert result.vehicle_daily_cost == Decimal("2000")
        assert result.toll_cost == Decimal("0")
        assert result.total_cost == Decimal("6100")

    def test_multi_day_lodging_is_nights(self):
        result = calculate_costs(_inputs(days=3))
        assert result.days == 3
        assert result.driver_meals_cost == Decimal("450")
        assert result.driver_lodging_cost == Decimal("1000")
        assert result.driver_incentive_cost == Decimal("600")
        assert result.vehicle_daily_cost == Decimal("6000")

    def test_incentive_flag(self):
        result = calculate_costs(_inputs(include_incentive=False))
        assert result.driver_incentive_cost == Decimal("0")
        assert result.total_cost == Decimal("5900")

    def test_tolls_from_estimator(self):
        result = calculate_costs(_inputs(), FixedTollEstimator(300))
        assert result.toll_cost == Decimal("300")
        assert result.total_cost == Decimal("6400")

    def test_excluded_tolls_are_zero(self):
        result = calculate_costs(_inputs(include_tolls=False), FixedTollEstimator(300))
        assert result.toll_cost == Decimal("0")

    def test_negative_distance_rejected(self):
        with pytest.raises(ValidationError):
            calculate_costs(_inputs(distance_km=Decimal("-1")))


class TestHondurasTolls:
    FEES = HondurasTollFees(
        sap_yojoa=Decimal("40"),
        sap_siguatepeque=Decimal("35"),
        sap_zambrano=Decimal("30"),
        salida_sap=Decimal("10"),
        salida_ptz=Decimal("20"),
        san_manuel=Decimal("25"),
    )

    def test_corridor_from_san_pedro(self):
        estimator = HondurasTollEstimator(self.FEES)
        parts = estimator.segments(origin="San Pedro Sula", destination="Tegucigalpa", base_location="San Pedro Sula")
        assert parts["sap_tgu"] == Decimal("210")
        assert parts["salida"] == Decimal("10")
        assert estimator.estimate(
            origin="San Pedro Sula", destination="Tegucigalpa", base_location="San Pedro Sula"
        ) == Decimal("220")

    def test_corridor_doubles_from_far_end(self):
        estimator = HondurasTollEstimator(self.FEES)
        parts = estimator.segments(origin="Tegucigalpa", destination="Choluteca", base_location="San Pedro Sula")
        assert parts["sap_tgu"] == Decimal("420")

    def test_north_coast_and_port(self):
        estimator = HondurasTollEstimator(self.FEES)
        parts = estimator.segments(origin="Puerto Cortés", destination="La Ceiba", base_location="San Pedro Sula")
        assert parts["sap_tla"] == Decimal("50")
        assert parts["ptz_sap"] == Decimal("20")
        assert parts["sap_tgu"] == Decimal("0")

    def test_comayagua_from_tegucigalpa(self):
        estimator = HondurasTollEstimator(self.FEES)
        parts = estimator.segments(origin="Tegucigalpa", destination="Comayagua", base_location="Tegucigalpa")
        assert parts["sap_tgu"] == Decimal("60")
