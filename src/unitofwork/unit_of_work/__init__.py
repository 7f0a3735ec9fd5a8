# unitofwork/unit_of_work/
# ├─ descriptor.py   # UnitOfWork (read_only / transactional / cache_mode / flush_mode), FlushMode, CacheMode
# └─ scope.py        # UnitOfWorkScope (open -> commit|rollback -> close) and the @unit_of_work decorator
