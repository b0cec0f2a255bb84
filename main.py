#!/usr/bin/env python3
"""
Image distribution agent
Application entry point
"""

from agent.cli import run_cli


def main():
    """Main function"""
    run_cli()


if __name__ == '__main__':
    main()
