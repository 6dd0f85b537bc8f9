#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
dllsig/__main__.py
==================

Entry point for ``python -m dllsig`` and the ``dllsig`` console script.
See :mod:`dllsig.main` for the commands.
"""

from dllsig.main import main

if __name__ == "__main__":
    raise SystemExit(main())
