import asyncio
import logging

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from unitofwork.database.context import current_session, has_bound_session
from unitofwork.database.session import ManagedSessionFactory, SessionFactoryRegistry
from unitofwork.exceptions.base import SessionFactoryNotFoundError
from unitofwork.unit_of_work.descriptor import FlushMode, UnitOfWork
from unitofwork.unit_of_work.scope import UnitOfWorkScope, unit_of_work
from ..test_fixtures.fakes import FakeSessionMaker


def make_factory(maker: FakeSessionMaker, name: str = "default") -> ManagedSessionFactory:
    return ManagedSessionFactory(name, maker)


def unique_violation() -> IntegrityError:
    return IntegrityError("INSERT INTO dogs", {}, Exception("UNIQUE constraint failed: dogs.name"))


@pytest.mark.asyncio
class TestScopeLifecycle:

    async def test_success_commits_then_closes(self, fake_maker):
        """
        Behavior:
                - A transactional unit of work that returns normally is committed exactly once,
                  then closed exactly once, and never rolled back.
        """
        factory = make_factory(fake_maker)

        async with UnitOfWorkScope(factory, UnitOfWork(transactional=True)) as session:
            assert current_session() is session

        session = fake_maker.sessions[0]
        assert session.calls == ["commit", "close"]
        assert not has_bound_session()

    async def test_failure_rolls_back_and_propagates(self, fake_maker):
        factory = make_factory(fake_maker)

        with pytest.raises(ValueError, match="boom"):
            async with UnitOfWorkScope(factory, UnitOfWork(transactional=True)):
                raise ValueError("boom")

        session = fake_maker.sessions[0]
        assert session.calls == ["rollback", "close"]
        assert session.committed == 0

    async def test_read_only_never_commits(self, fake_maker):
        factory = make_factory(fake_maker)

        async with UnitOfWorkScope(factory, UnitOfWork(read_only=True)) as session:
            assert session.info["read_only"] is True

        assert fake_maker.sessions[0].calls == ["close"]

    async def test_read_only_failure_still_rolls_back(self, fake_maker):
        factory = make_factory(fake_maker)

        with pytest.raises(LookupError):
            async with UnitOfWorkScope(factory, UnitOfWork(read_only=True)):
                raise LookupError()

        assert fake_maker.sessions[0].calls == ["rollback", "close"]

    @pytest.mark.parametrize("fail", [False, True])
    async def test_non_transactional_only_closes(self, fake_maker, fail):
        factory = make_factory(fake_maker)

        try:
            async with UnitOfWorkScope(factory, UnitOfWork(transactional=False)):
                if fail:
                    raise RuntimeError("handler failed")
        except RuntimeError:
            assert fail

        assert fake_maker.sessions[0].calls == ["close"]

    async def test_commit_failure_rolls_back_and_reraises(self):
        """
        Behavior:
                - Violations detected at commit time (FlushMode.COMMIT) are rolled back and
                  re-raised unchanged so the HTTP layer can translate them.
        """
        error = unique_violation()
        maker = FakeSessionMaker(commit_error=error)
        factory = make_factory(maker)

        with pytest.raises(IntegrityError) as exc_info:
            async with UnitOfWorkScope(factory, UnitOfWork(flush_mode=FlushMode.COMMIT)):
                pass

        assert exc_info.value is error
        assert maker.sessions[0].calls == ["commit", "rollback", "close"]

    async def test_rollback_failure_is_logged_and_original_error_wins(self, caplog):
        maker = FakeSessionMaker(rollback_error=OperationalError("ROLLBACK", {}, Exception("connection lost")))
        factory = make_factory(maker)

        with caplog.at_level(logging.ERROR, logger="unitofwork.unit_of_work.scope"):
            with pytest.raises(ValueError, match="original"):
                async with UnitOfWorkScope(factory):
                    raise ValueError("original")

        assert maker.sessions[0].calls == ["rollback", "close"]
        assert any("Failed to rollback session" in r.getMessage() for r in caplog.records)
        assert not has_bound_session()

    async def test_cancellation_rolls_back_and_closes(self, fake_maker):
        factory = make_factory(fake_maker)
        entered = asyncio.Event()

        async def handler():
            async with UnitOfWorkScope(factory):
                entered.set()
                await asyncio.sleep(10)

        task = asyncio.create_task(handler())
        await entered.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        session = fake_maker.sessions[0]
        assert session.calls == ["rollback", "close"]

    async def test_acquisition_failure_propagates_without_binding(self):
        maker = FakeSessionMaker(error=OperationalError("connect", {}, Exception("database is down")))
        factory = make_factory(maker)
        body_ran = False

        with pytest.raises(OperationalError):
            async with UnitOfWorkScope(factory):
                body_ran = True

        assert body_ran is False
        assert not has_bound_session()

    async def test_flush_mode_commit_disables_autoflush(self, fake_maker):
        factory = make_factory(fake_maker)

        async with UnitOfWorkScope(factory, UnitOfWork(flush_mode=FlushMode.COMMIT)) as session:
            assert session.autoflush is False

        async with UnitOfWorkScope(factory, UnitOfWork(flush_mode=FlushMode.AUTO)) as session:
            assert session.autoflush is True


@pytest.mark.asyncio
class TestScopeBinding:

    async def test_nested_scope_joins_outer_session(self, fake_maker):
        """
        Behavior:
                - A unit of work entered while another one for the same factory is active
                  reuses that session; only the outermost scope commits and closes it.
        """
        factory = make_factory(fake_maker)

        async with UnitOfWorkScope(factory) as outer:
            async with UnitOfWorkScope(factory) as inner:
                assert inner is outer
            # inner exit neither committed nor unbound
            assert outer.calls == []
            assert current_session() is outer

        assert fake_maker.opened == 1
        assert outer.calls == ["commit", "close"]

    async def test_different_factories_are_bound_side_by_side(self):
        orders = make_factory(FakeSessionMaker(), "orders")
        audit = make_factory(FakeSessionMaker(), "audit")

        async with UnitOfWorkScope(orders) as orders_session:
            async with UnitOfWorkScope(audit) as audit_session:
                assert current_session("orders") is orders_session
                assert current_session("audit") is audit_session
            assert not has_bound_session("audit")
            assert has_bound_session("orders")

    async def test_concurrent_units_of_work_are_isolated(self, fake_maker):
        factory = make_factory(fake_maker)

        async def handler():
            async with UnitOfWorkScope(factory) as session:
                await asyncio.sleep(0)
                assert current_session() is session
                return session

        first, second = await asyncio.gather(handler(), handler())

        assert first is not second
        assert fake_maker.opened == 2
        assert all(s.calls == ["commit", "close"] for s in fake_maker.sessions)


@pytest.mark.asyncio
class TestUnitOfWorkDecorator:

    async def test_decorated_call_runs_in_its_own_session(self, fake_maker):
        registry = SessionFactoryRegistry()
        registry.register(make_factory(fake_maker))

        @unit_of_work(transactional=True, registry=registry)
        async def handler(value: int) -> int:
            current_session()  # bound while the call runs
            return value * 2

        assert await handler(21) == 42
        assert await handler(1) == 2

        assert fake_maker.opened == 2
        assert all(s.calls == ["commit", "close"] for s in fake_maker.sessions)

    async def test_decorator_keeps_signature_and_descriptor(self, fake_maker):
        registry = SessionFactoryRegistry()
        descriptor = UnitOfWork(read_only=True)

        @unit_of_work(descriptor, registry=registry)
        async def find(name: str) -> str:
            return name

        assert find.__name__ == "find"
        assert find.__wrapped__.__name__ == "find"
        assert find.__unit_of_work__ is descriptor

    async def test_factory_is_resolved_per_call(self, fake_maker):
        registry = SessionFactoryRegistry()

        @unit_of_work(value="late", registry=registry)
        async def handler():
            return current_session("late")

        with pytest.raises(SessionFactoryNotFoundError):
            await handler()

        registry.register(make_factory(fake_maker, "late"))
        assert await handler() is fake_maker.sessions[0]

    async def test_descriptor_and_options_are_exclusive(self):
        with pytest.raises(TypeError):
            unit_of_work(UnitOfWork(), read_only=True, registry=SessionFactoryRegistry())
