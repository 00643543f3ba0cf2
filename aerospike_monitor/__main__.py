"""
使用方式:
    python -m aerospike_monitor
"""

from aerospike_monitor.main import cli


if __name__ == "__main__":
    cli()
