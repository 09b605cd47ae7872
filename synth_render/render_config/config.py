"""Global configuration constants for the render configuration core.

Centralises the values shared across the package: the record schema
version, the application directory name, the fixed key under which the
widget state record is stored, and the semantic class CSV file name.

Concrete paths are computed by render_config.storage and
render_config.semantic_csv from these constants; code outside this
module should rely on the helpers there rather than constructing paths
manually.
"""

# Record schema version.
#
# Written into every saved record. The schema is additive: older records
# are still decoded and any field they lack falls back to its factory
# default, so bumping this value never discards a user's settings.
CONFIG_VERSION: int = 2

# Base directory name for all data under the user's home directory.
#
# The JSON record store and the log file live below
#   Path.home() / f".{APP_DIR_NAME}"
APP_DIR_NAME: str = "synth_render"

# Fixed logical key of the persisted widget state record.
#
# Changing this makes the plugin "forget" the previous configuration,
# so treat it as a stable identifier.
RECORD_KEY: str = "render_config/widget_state"

# File name written by the semantic class export, inside the output
# directory chosen by the user.
SEMANTIC_CLASSES_FILE_NAME: str = "semantic_classes.csv"
