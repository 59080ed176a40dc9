"""
Configuration management subsystem.

Static vs Dynamic Configuration
--------------------------------
**Static (Config):**
- Loaded from environment variables at startup (.env supported)
- Includes: database URL, pool sizes, logging, engine timing cadence
- Changes require a restart

**Balance (ConfigManager):**
- Loaded from YAML defaults under `config/`
- Includes: accrual rates, stone drops, breakthrough rates, cost curves
- In-memory overrides via `ConfigManager.set_override`

Usage
-----
```python
from src.core.config import Config, ConfigManager

tick = Config.TICK_INTERVAL_SECONDS
base_rate = ConfigManager.get("cultivation.accrual.base_rate", 10)
```
"""

from src.core.config.config import Config, Environment
from src.core.config.manager import BUILTIN_DEFAULTS, ConfigManager

__all__ = [
    "Config",
    "Environment",
    "ConfigManager",
    "BUILTIN_DEFAULTS",
]
