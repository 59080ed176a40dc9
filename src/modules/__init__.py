"""
Feature modules.

- cultivation: meditation ticks, persistence cadence, breakthroughs and
  method progression for a single player
- shared: base service/repository patterns, domain exceptions, formulas
"""
