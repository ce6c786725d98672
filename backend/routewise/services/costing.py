# Overview: Trip cost engine; pure Decimal arithmetic plus the toll-estimation strategies.

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal

from ..errors import ValidationError
from .currency import to_decimal

"""
Cost engine invariants

- Inputs are local-currency major units; outputs are unrounded Decimals.
- Fuel price is normalized to per-gallon, efficiency to km per gallon and
  tank capacity to gallons before any arithmetic.
- Vehicle cost (distance + daily) is always part of the total; every other
  group follows its inclusion flag.
- Toll matching is delegated to a TollEstimator so route heuristics can be
  replaced without touching this module.
"""

LITRES_PER_GALLON = Decimal("3.78541")
KM_PER_MILE = Decimal("1.609344")
OPERATING_DAY_MINUTES = 8 * 60

EFFICIENCY_UNITS = ("km/gal", "km/l", "mpg")
VOLUME_UNITS = ("gal", "l")

ZERO = Decimal("0")


def fuel_price_per_gallon(price, unit: str = "gal") -> Decimal:
    p = to_decimal(price, "fuel_price")
    unit = (unit or "gal").lower()
    if unit == "gal":
        return p
    if unit in ("l", "liter", "litre"):
        return p * LITRES_PER_GALLON
    raise ValidationError(f"Unsupported fuel price unit: {unit}")


def efficiency_km_per_gallon(efficiency, unit: str = "km/gal") -> Decimal:
    eff = to_decimal(efficiency, "fuel_efficiency")
    unit = (unit or "km/gal").lower()
    if unit == "km/gal":
        return eff
    if unit == "km/l":
        return eff * LITRES_PER_GALLON
    if unit == "mpg":
        return eff * KM_PER_MILE
    raise ValidationError(f"Unsupported fuel efficiency unit: {unit}")


def capacity_gallons(capacity, unit: str = "gal") -> Decimal:
    cap = to_decimal(capacity, "fuel_capacity")
    unit = (unit or "gal").lower()
    if unit == "gal":
        return cap
    if unit in ("l", "liter", "litre"):
        return cap / LITRES_PER_GALLON
    raise ValidationError(f"Unsupported fuel capacity unit: {unit}")


def derive_trip_days(total_time_minutes) -> int:
    """8-hour operating days, rounded up, never fewer than one."""
    minutes = to_decimal(total_time_minutes or 0, "total_time_minutes")
    if minutes <= 0:
        return 1
    return max(1, math.ceil(minutes / OPERATING_DAY_MINUTES))


@dataclass(frozen=True)
class VehicleSpec:
    fuel_efficiency: Decimal
    fuel_efficiency_unit: str = "km/gal"
    fuel_capacity: Decimal = ZERO
    fuel_capacity_unit: str = "gal"
    cost_per_distance: Decimal = ZERO
    cost_per_day: Decimal = ZERO

    @classmethod
    def from_vehicle(cls, vehicle) -> "VehicleSpec":
        return cls(
            fuel_efficiency=to_decimal(vehicle.fuel_efficiency, "fuel_efficiency"),
            fuel_efficiency_unit=vehicle.fuel_efficiency_unit or "km/gal",
            fuel_capacity=to_decimal(vehicle.fuel_capacity or 0, "fuel_capacity"),
            fuel_capacity_unit=vehicle.fuel_capacity_unit or "gal",
            cost_per_distance=to_decimal(vehicle.cost_per_distance or 0, "cost_per_distance"),
            cost_per_day=to_decimal(vehicle.cost_per_day or 0, "cost_per_day"),
        )

    @property
    def km_per_gallon(self) -> Decimal:
        return efficiency_km_per_gallon(self.fuel_efficiency, self.fuel_efficiency_unit)

    @property
    def tank_gallons(self) -> Decimal:
        return capacity_gallons(self.fuel_capacity, self.fuel_capacity_unit)


@dataclass(frozen=True)
class DriverPerDiem:
    meal_cost_per_day: Decimal = ZERO
    hotel_cost_per_night: Decimal = ZERO
    incentive_per_day: Decimal = ZERO

    @classmethod
    def from_parameters(cls, params) -> "DriverPerDiem":
        return cls(
            meal_cost_per_day=to_decimal(params.meal_cost_per_day or 0),
            hotel_cost_per_night=to_decimal(params.hotel_cost_per_night or 0),
            incentive_per_day=to_decimal(params.driver_incentive_per_day or 0),
        )


@dataclass(frozen=True)
class CostInputs:
    distance_km: Decimal
    vehicle: VehicleSpec
    fuel_price: Decimal
    fuel_price_unit: str = "gal"
    per_diem: DriverPerDiem = field(default_factory=DriverPerDiem)
    days: int | None = None
    total_time_minutes: int = 0
    include_fuel: bool = True
    include_meals: bool = True
    include_tolls: bool = True
    include_incentive: bool = True
    origin: str = ""
    destination: str = ""
    base_location: str = ""


@dataclass(frozen=True)
class CostBreakdown:
    fuel_cost: Decimal
    refueling_cost: Decimal
    driver_meals_cost: Decimal
    driver_lodging_cost: Decimal
    driver_incentive_cost: Decimal
    vehicle_distance_cost: Decimal
    vehicle_daily_cost: Decimal
    toll_cost: Decimal
    total_cost: Decimal
    days: int = 1

    COMPONENTS = (
        "fuel_cost",
        "refueling_cost",
        "driver_meals_cost",
        "driver_lodging_cost",
        "driver_incentive_cost",
        "vehicle_distance_cost",
        "vehicle_daily_cost",
        "toll_cost",
        "total_cost",
    )

    def components(self) -> dict[str, Decimal]:
        return {name: getattr(self, name) for name in self.COMPONENTS}

    def to_dict(self) -> dict:
        data = {name: float(value) for name, value in self.components().items()}
        data["days"] = self.days
        return data


def combine_costs(
    *,
    fuel_cost=ZERO,
    refueling_cost=ZERO,
    driver_meals_cost=ZERO,
    driver_lodging_cost=ZERO,
    driver_incentive_cost=ZERO,
    vehicle_distance_cost=ZERO,
    vehicle_daily_cost=ZERO,
    toll_cost=ZERO,
    include_fuel: bool = True,
    include_meals: bool = True,
    include_tolls: bool = True,
) -> Decimal:
    """Total cost from individual components under the inclusion flags."""
    total = to_decimal(vehicle_distance_cost) + to_decimal(vehicle_daily_cost)
    if include_fuel:
        total += to_decimal(fuel_cost) + to_decimal(refueling_cost)
    if include_meals:
        total += to_decimal(driver_meals_cost) + to_decimal(driver_lodging_cost) + to_decimal(driver_incentive_cost)
    if include_tolls:
        total += to_decimal(toll_cost)
    return total


# =============================================================================
# Toll estimation strategies
# =============================================================================


class TollEstimator:
    """Route -> toll fees (local currency, major units)."""

    def estimate(self, *, origin: str, destination: str, base_location: str) -> Decimal:
        raise NotImplementedError


class FixedTollEstimator(TollEstimator):
    """Flat toll amount for every trip (zero by default)."""

    def __init__(self, amount=ZERO):
        self.amount = to_decimal(amount, "toll")

    def estimate(self, *, origin: str, destination: str, base_location: str) -> Decimal:
        return self.amount


@dataclass(frozen=True)
class HondurasTollFees:
    sap_yojoa: Decimal = ZERO
    sap_siguatepeque: Decimal = ZERO
    sap_zambrano: Decimal = ZERO
    salida_sap: Decimal = ZERO
    salida_ptz: Decimal = ZERO
    san_manuel: Decimal = ZERO


# Destinations reached over the CA-5 corridor between San Pedro Sula and Tegucigalpa
CA5_CORRIDOR_DESTINATIONS = (
    "Tegucigalpa", "Choluteca", "San Lorenzo", "La Paz", "Marcala", "Juticalpa",
    "Catacamas", "Zambrano", "El Paraiso", "Danli", "Valle de Angeles",
    "Costa Rica", "Nicaragua", "Panama",
)


class HondurasTollEstimator(TollEstimator):
    """
    Substring heuristics over free-text place names for the Honduran toll
    network (CA-5 plazas, San Manuel towards the north coast, port exits).

    Fees are round-trip unless noted; a trip starting at the opposite end
    of the corridor from its base pays the corridor twice over.
    """

    def __init__(self, fees: HondurasTollFees):
        self.fees = fees

    @classmethod
    def from_parameters(cls, params) -> "HondurasTollEstimator":
        return cls(
            HondurasTollFees(
                sap_yojoa=to_decimal(params.toll_sap_yojoa or 0),
                sap_siguatepeque=to_decimal(params.toll_sap_siguatepeque or 0),
                sap_zambrano=to_decimal(params.toll_sap_zambrano or 0),
                salida_sap=to_decimal(params.toll_salida_sap or 0),
                salida_ptz=to_decimal(params.toll_salida_ptz or 0),
                san_manuel=to_decimal(params.toll_san_manuel or 0),
            )
        )

    @staticmethod
    def _base_code(base_location: str) -> str:
        if "San Pedro Sula" in base_location:
            return "SAP"
        if "Tegucigalpa" in base_location:
            return "TGU"
        return ""

    def segments(self, *, origin: str, destination: str, base_location: str) -> dict[str, Decimal]:
        origin = origin or ""
        destination = destination or ""
        base = self._base_code(base_location or "")
        fees = self.fees

        def touches(*names: str) -> bool:
            return any(n in origin or n in destination for n in names)

        corridor = any(n in destination for n in CA5_CORRIDOR_DESTINATIONS)
        sig = touches("Siguatepeque")
        com = touches("Comayagua")
        ptz = touches("Cortés")
        tla = touches("Tela", "Progreso")
        lce = touches("La Ceiba", "Sambo", "Trujillo")

        sap_tgu = ZERO
        if base == "SAP":
            sap_tgu = fees.sap_yojoa * 2 if sig else ZERO
            if com:
                sap_tgu = (fees.sap_yojoa + fees.sap_siguatepeque) * 2
        elif base == "TGU":
            sap_tgu = fees.sap_zambrano * 2 if com else ZERO
            if sig:
                sap_tgu = (fees.sap_zambrano + fees.sap_siguatepeque) * 2

        if corridor:
            sap_tgu = (fees.sap_yojoa + fees.sap_siguatepeque + fees.sap_zambrano) * 2
            if (base == "SAP" and "Tegucigalpa" in origin) or (base == "TGU" and "San Pedro Sula" in origin):
                sap_tgu = sap_tgu * 2

        return {
            "sap_tgu": sap_tgu,
            "sap_tla": fees.san_manuel * 2 if (tla or lce) else ZERO,
            "ptz_sap": fees.salida_ptz if ptz else ZERO,
            "salida": fees.salida_sap,
        }

    def estimate(self, *, origin: str, destination: str, base_location: str) -> Decimal:
        parts = self.segments(origin=origin, destination=destination, base_location=base_location)
        return sum(parts.values(), ZERO)


# =============================================================================
# Engine
# =============================================================================


def fuel_and_refueling(distance_km: Decimal, vehicle: VehicleSpec, price_per_gal: Decimal) -> tuple[Decimal, Decimal]:
    km_per_gal = vehicle.km_per_gallon
    if km_per_gal <= 0:
        raise ValidationError("Vehicle fuel efficiency must be positive")

    fuel = distance_km / km_per_gal * price_per_gal

    tank = vehicle.tank_gallons
    if tank <= 0:
        return fuel, ZERO

    tank_range = tank * km_per_gal
    refueling = ZERO
    if tank_range < distance_km:
        stops = max(0, math.floor(distance_km / tank_range) - 1)
        refueling = stops * (tank * price_per_gal)
    return fuel, refueling


def calculate_costs(inputs: CostInputs, toll_estimator: TollEstimator | None = None) -> CostBreakdown:
    """
    Compute every cost component for a trip.

    Days come from the explicit count when given, otherwise from the route
    duration (8-hour days). Tolls are zero when excluded or when no
    estimator is supplied.
    """
    distance = to_decimal(inputs.distance_km, "distance_km")
    if distance < 0:
        raise ValidationError("distance_km cannot be negative")

    if inputs.days is not None and int(inputs.days) > 0:
        days = int(inputs.days)
    else:
        days = derive_trip_days(inputs.total_time_minutes)

    price_per_gal = fuel_price_per_gallon(inputs.fuel_price, inputs.fuel_price_unit)
    fuel, refueling = fuel_and_refueling(distance, inputs.vehicle, price_per_gal)

    per_diem = inputs.per_diem
    meals = days * to_decimal(per_diem.meal_cost_per_day)
    lodging = max(0, days - 1) * to_decimal(per_diem.hotel_cost_per_night)
    incentive = days * to_decimal(per_diem.incentive_per_day) if inputs.include_incentive else ZERO

    vehicle_distance = distance * to_decimal(inputs.vehicle.cost_per_distance)
    vehicle_daily = days * to_decimal(inputs.vehicle.cost_per_day)

    tolls = ZERO
    if inputs.include_tolls and toll_estimator is not None:
        tolls = to_decimal(
            toll_estimator.estimate(
                origin=inputs.origin,
                destination=inputs.destination,
                base_location=inputs.base_location,
            ),
            "toll",
        )

    total = combine_costs(
        fuel_cost=fuel,
        refueling_cost=refueling,
        driver_meals_cost=meals,
        driver_lodging_cost=lodging,
        driver_incentive_cost=incentive,
        vehicle_distance_cost=vehicle_distance,
        vehicle_daily_cost=vehicle_daily,
        toll_cost=tolls,
        include_fuel=inputs.include_fuel,
        include_meals=inputs.include_meals,
        include_tolls=inputs.include_tolls,
    )

    return CostBreakdown(
        fuel_cost=fuel,
        refueling_cost=refueling,
        driver_meals_cost=meals,
        driver_lodging_cost=lodging,
        driver_incentive_cost=incentive,
        vehicle_distance_cost=vehicle_distance,
        vehicle_daily_cost=vehicle_daily,
        toll_cost=tolls,
        total_cost=total,
        days=days,
    )
