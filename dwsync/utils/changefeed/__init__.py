from .changefeed_manager import ChangefeedCreationException, ChangefeedException, ChangefeedManager
from .changefeed_templates import build_changefeed_config, build_sink_uri, generate_changefeed_id

__all__ = [
    'ChangefeedManager',
    'ChangefeedException',
    'ChangefeedCreationException',
    'build_changefeed_config',
    'build_sink_uri',
    'generate_changefeed_id',
]
