#!/usr/bin/env python3
# filename: ipxe-server-setup/install.py
# -*- coding: utf-8 -*-
"""
Entry point for the iPXE server installer.

Usage: sudo ./install.py [options]   (see --help)
"""

import sys

from ipxe_setup.main_installer import main

if __name__ == "__main__":
    sys.exit(main())
