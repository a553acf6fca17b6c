"""Power-to-weight ratios over a slice of the Motor Trend car road tests."""

from __future__ import annotations

from typing import NamedTuple

from ._helpers import coerce_number
from .registry import register


class Car(NamedTuple):
    model: str
    mpg: float
    cyl: int
    hp: int
    wt: float  # 1000 lbs


MTCARS: tuple[Car, ...] = (
    Car("Mazda RX4", 21.0, 6, 110, 2.620),
    Car("Mazda RX4 Wag", 21.0, 6, 110, 2.875),
    Car("Datsun 710", 22.8, 4, 93, 2.320),
    Car("Hornet 4 Drive", 21.4, 6, 110, 3.215),
    Car("Hornet Sportabout", 18.7, 8, 175, 3.440),
    Car("Valiant", 18.1, 6, 105, 3.460),
    Car("Duster 360", 14.3, 8, 245, 3.570),
    Car("Merc 240D", 24.4, 4, 62, 3.190),
    Car("Merc 230", 22.8, 4, 95, 3.150),
    Car("Merc 280", 19.2, 6, 123, 3.440),
    Car("Fiat 128", 32.4, 4, 66, 2.200),
    Car("Honda Civic", 30.4, 4, 52, 1.615),
    Car("Toyota Corolla", 33.9, 4, 65, 1.835),
    Car("Cadillac Fleetwood", 10.4, 8, 205, 5.250),
)


@register(cache=True)
def mtcars_data(cyls: object) -> tuple[Car, ...]:
    """Rows with ``cyls`` cylinders."""

    wanted = coerce_number(cyls, func_name="mtcars_data", arg_name="cyls")
    return tuple(car for car in MTCARS if car.cyl == wanted)


@register()
def horsepower(mtcars_data: tuple[Car, ...]) -> list[int]:
    return [car.hp for car in mtcars_data]


@register()
def weight(mtcars_data: tuple[Car, ...]) -> list[float]:
    return [car.wt for car in mtcars_data]


@register()
def power_to_weight(horsepower: list[int], weight: list[float]) -> list[float]:
    """Horsepower per 1000 lbs, rounded to two decimals."""

    return [round(hp / wt, 2) for hp, wt in zip(horsepower, weight)]
