# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Integration tests that import real source trees end to end."""
