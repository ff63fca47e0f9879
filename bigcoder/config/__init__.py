# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""YAML configuration: schema, loader and exceptions."""
