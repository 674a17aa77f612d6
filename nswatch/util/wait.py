# Copyright 2014 The Kubernetes Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import asyncio
import random


class WaitTimeoutError(Exception):
    pass


def jitter(duration, max_factor):
    if max_factor <= 0:
        max_factor = 1
    return duration + random.random() * max_factor * duration


async def sleep_until(duration, stop_event):
    """Sleep for ``duration`` seconds. Return True if stopped before then."""
    try:
        await asyncio.wait_for(stop_event.wait(), duration)
    except asyncio.TimeoutError:
        return False
    return True


async def jitter_until(f, period, jitter_factor, stop_event):
    while not stop_event.is_set():
        await f()
        if jitter_factor > 0:
            jittered_period = jitter(period, jitter_factor)
        else:
            jittered_period = period
        if await sleep_until(jittered_period, stop_event):
            return


async def poll_immediate_until(interval, condition, stop_event):
    while True:
        if condition():
            return
        if await sleep_until(interval, stop_event):
            raise WaitTimeoutError
