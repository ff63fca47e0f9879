# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
bigcoder: GPT-BigCode inference model.

Loads a decoder-only transformer (optionally multi-query) from a named
parameter store and runs a full-sequence forward pass that returns
next-token logits for the final position.
"""

__version__ = "0.1.0"
