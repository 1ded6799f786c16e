#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
boiler - 主入口

简洁的主入口脚本
"""

import sys

from boiler.cli import main


if __name__ == "__main__":
    sys.exit(main())
