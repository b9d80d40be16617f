from .money import money, round_half_up, to_decimal  # noqa
from .surcharge import percentage_surcharge  # noqa
from .tiered_rate import RateBand, TieredCharge, excess_quantity, tiered_charge  # noqa
