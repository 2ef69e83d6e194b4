from datetime import date

MINIMUM_NIGHTS = 1


def count_nights(check_in: date, check_out: date) -> int:
    """Whole nights between two dates; negative when check-out precedes check-in."""
    return (check_out - check_in).days


def total_price(nightly_rate: float, check_in: date, check_out: date) -> float:
    """
    ``nightly_rate * nights`` for the stay.

    Returns 0.0 when check-out is on or before check-in; callers treat that
    as an invalid stay.
    """
    if check_in is None or check_out is None:
        return 0.0
    nights = count_nights(check_in, check_out)
    if nights <= 0:
        return 0.0
    return nightly_rate * nights


def stay_charge(
    nightly_rate: float,
    check_in: date,
    check_out: date,
    minimum_nights: int = MINIMUM_NIGHTS,
) -> float:
    """Charge used when a booking is created: short stays are billed the minimum."""
    nights = max(count_nights(check_in, check_out), minimum_nights)
    return nightly_rate * nights
