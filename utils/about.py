"""Version and license text printed by the vbht tools."""

VERSION = "1.2.0"

COPYRIGHT = "Copyright (C) 2012  Mariano Perez Rodriguez"

LICENSE_NOTICE = f"""{COPYRIGHT}

This program is free software: you can redistribute it and/or modify it
under the terms of the GNU Affero General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
GNU Affero General Public License for more details.

You should have received a copy of the GNU Affero General Public License
along with this program. If not, see <http://www.gnu.org/licenses>."""


def version_line(prog: str) -> str:
    return f"{prog} {VERSION}"
