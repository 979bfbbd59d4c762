"""fishpop: Age- and area-structured fish population projection.

The numerical engine of a management strategy evaluation:
  - Annual projection of numbers-at-age by area (recruitment, natural and
    fishing mortality, plus-group, movement between areas)
  - Multi-year driver with effort-based, apical-F and unfished-reference
    fishing controls
  - Spatial effort allocation by vulnerable biomass with area closures
  - Unfished-reference feedback re-equilibrating regional recruitment
"""

__version__ = "0.1.0"
