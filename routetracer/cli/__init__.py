"""
rtrace - route tracer command-line interface.

Usage:
    rtrace enable [ROUTES]...
    rtrace disable
    rtrace status
    rtrace view [--route NAME] [--latest]
    rtrace clean
"""

__cli_name__ = "rtrace"


def main():
    """Wrapper to avoid eager import of __main__ which causes warnings with -m."""
    from .__main__ import main as _main
    return _main()
