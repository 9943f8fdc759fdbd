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

from typing import Any, List, Optional

from .operationFailed import OperationFailed


class AllOrNothing(OperationFailed):
    """
    One or more instances of a provisioning batch failed to launch.

    Instances that did launch were terminated before this was raised, so
    the batch as a whole must be treated as not provisioned.
    """

    def __init__(self, message: str, failed: int = 0,
                 terminated: Optional[List[Any]] = None) -> None:
        super(AllOrNothing, self).__init__(message)

        self.failed = failed
        self.terminated = terminated or []
