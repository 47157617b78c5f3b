"""
rulesync - secure access to remote rule repositories.

The ``rulesync.git`` package validates addresses, negotiates credentials
and runs clone/pull under deadlines; ``rulesync.services`` builds a
repository cache and rule fetching on top of it.
"""

__version__ = "0.1.0"
