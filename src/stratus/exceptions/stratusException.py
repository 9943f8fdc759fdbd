# Copyright 2008-2018 Univa Corporation
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from typing import List, Optional


class StratusException(Exception):
    """
    Base class for all exceptions raised by the adapter.

    Secondary failures encountered while handling this one (typically
    during cleanup of a partially created resource) are collected in
    'suppressed' so they never replace the original cause.
    """

    def __init__(self, message: Optional[str] = None) -> None:
        super(StratusException, self).__init__(message)

        self.message = message
        self.suppressed: List[BaseException] = []

    def add_suppressed(self, exc: BaseException) -> None:
        self.suppressed.append(exc)

    def __str__(self) -> str:
        msg = self.message or ''

        if self.suppressed:
            msg += ' (suppressed: {})'.format(
                '; '.join(str(exc) for exc in self.suppressed))

        return msg
