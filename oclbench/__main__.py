# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

import sys

from .cli import main

sys.exit(main())
