import sys

import click

DARWIN = sys.platform == "darwin"

LOGO = click.style("TSR React Native build platform", bold=True)
