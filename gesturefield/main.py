#!/usr/bin/env python
"""
Command-line interface for the gesturefield application.

Examples:
    # Run with default settings
    gesturefield

    # Fewer particles, only two formations
    gesturefield --n-particles 800 --shapes sphere,rings

    # Frame-rate independent integration
    gesturefield --step-policy fixed

    # Log the control state on every inference tick
    gesturefield --log-control-state

    # See what's available
    gesturefield --list-shapes
"""

import argh

from gesturefield.script_utils import gesturefield_cli


def dispatched_gesturefield_cli():
    argh.dispatch_command(gesturefield_cli)


if __name__ == "__main__":
    dispatched_gesturefield_cli()
