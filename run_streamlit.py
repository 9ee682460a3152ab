#!/usr/bin/env python
"""
Wrapper to run the Streamlit console against the installed package
"""
import sys
from pathlib import Path

from streamlit.web import cli as stcli

import heb_shopper.ui

sys.argv = ["streamlit", "run", str(Path(heb_shopper.ui.__file__).parent / "app.py")]
sys.exit(stcli.main())
