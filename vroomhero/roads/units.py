"""Speed unit conversions."""

KMH_TO_MPH = 0.621371
MPH_TO_KMH = 1.60934
MPS_TO_MPH = 2.23694
KNOTS_TO_MPH = 1.15078


def kmh_to_mph(v: float) -> float:
    return v * KMH_TO_MPH


def mph_to_kmh(v: float) -> float:
    return v * MPH_TO_KMH


def meters_per_second_to_mph(v: float) -> float:
    return v * MPS_TO_MPH


def knots_to_mph(v: float) -> float:
    # NMEA RMC speed over ground is reported in knots
    return v * KNOTS_TO_MPH
