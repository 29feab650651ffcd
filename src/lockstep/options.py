from dataclasses import dataclass, field

from lockstep.strategy import get_strategy_class

from libb import ConfigOptions, scriptname

__all__ = ['LockstepOptions']


def _default_column_overrides() -> dict[str, str]:
    # lockstep views expose the snapshot xmin as a computed column
    return {'current_xmin': 'bigint'}


@dataclass
class LockstepOptions(ConfigOptions):
    """Options

    supported driver names: `postgresql`, `sqlite`

    Streaming options:
    - buffer_size: Rows the result stream holds ahead of the consumer (default: 0, hand-off)
    - poll_interval: Seconds between cancellation checks while a publish is blocked (default: 0.05)
    - column_overrides: Column name to catalog type name, applied over the discovered schema
    """
    drivername: str = 'postgresql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    appname: str = None
    use_pool: bool = False
    buffer_size: int = 0
    poll_interval: float = 0.05
    column_overrides: dict[str, str] = field(default_factory=_default_column_overrides)

    def __post_init__(self):
        try:
            strategy_cls = get_strategy_class(self.drivername)
        except ValueError as err:
            raise ValueError(f'drivername must be one of the registered dialects. {err}') from None
        if self.buffer_size < 0:
            raise ValueError('buffer_size must not be negative')
        if self.poll_interval <= 0:
            raise ValueError('poll_interval must be positive')
        self.appname = self.appname or scriptname() or 'python_console'
        strategy_cls.validate_options(self)
        self.column_overrides = {k.lower(): v for k, v in (self.column_overrides or {}).items()}
