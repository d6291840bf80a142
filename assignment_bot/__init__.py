# SPDX-License-Identifier: MIT OR Apache-2.0
# SPDX-FileCopyrightText: The Assignment Bot Contributors
