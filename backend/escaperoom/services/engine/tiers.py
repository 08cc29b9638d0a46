from typing import NamedTuple, Optional


class Tier(NamedTuple):
    name: str
    short_label: str
    description: str
    low: int
    high: Optional[int]  # None: open ended

    def contains(self, score):
        return score >= self.low and (self.high is None or score <= self.high)

    def to_dict(self):
        return {
            'name': self.name,
            'short_label': self.short_label,
            'description': self.description,
            'range': [self.low, self.high],
        }


# Ordered best first; inclusive bounds, no gaps
TIERS = (
    Tier('Cyber Guardian Elite', 'Elite', 'Excellence in digital security.', 1000, None),
    Tier('Cyber Guardian Expert', 'Expert', 'Solid command of safe practices.', 800, 999),
    Tier('Cyber Guardian Apprentice', 'Apprentice', 'Adequate knowledge; room to improve.', 600, 799),
    Tier('Crew at Risk', 'At risk', 'Reinforce protocols and review good practices.', 0, 599),
)


def classify(score, tiers=TIERS):
    """Return the tier whose range holds ``score``; negatives fall in the lowest."""
    for tier in tiers:
        if tier.contains(score):
            return tier
    return tiers[-1]


def check_tiers(tiers=TIERS):
    """Raise ValueError unless the ranges are ordered, contiguous and reach 0."""
    if not tiers:
        raise ValueError('Tier table is empty')
    if tiers[0].high is not None:
        raise ValueError('Top tier must be open ended')
    for upper, lower in zip(tiers, tiers[1:]):
        if lower.high is None or lower.high + 1 != upper.low:
            raise ValueError(f'Tiers {upper.short_label!r} and {lower.short_label!r} are not contiguous')
    if tiers[-1].low != 0:
        raise ValueError('Lowest tier must start at 0')
