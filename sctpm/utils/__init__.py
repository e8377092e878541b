# This file is part of sctpm.
#
# Licensed under MIT License.
