"""
Database layer: declarative Base, engine / session factory construction and the
ambient (contextvar) session binding used by units of work.

Import from the submodules directly (`unitofwork.database.session`,
`unitofwork.database.context`) to keep import order free of cycles.
"""
