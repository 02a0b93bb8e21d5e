"""Unit tests for the ViewList reconciler."""

import asyncio
from unittest.mock import MagicMock

import pytest

from widgetsync.core.view_list import ViewList


class FakeView:
    def __init__(self, model, index):
        self.model = model
        self.index = index
        self.removed = 0

    def remove(self):
        self.removed += 1


@pytest.fixture
def created():
    return []


@pytest.fixture
def view_list(created):
    async def create_view(model, index):
        view = FakeView(model, index)
        created.append(view)
        return view

    return ViewList(create_view)


async def settle():
    for _ in range(3):
        await asyncio.sleep(0)


class TestUpdate:
    """Test prefix-preserving reconciliation."""

    @pytest.mark.asyncio
    async def test_initial_update_creates_all(self, view_list, created):
        a, b, c = object(), object(), object()

        futures = view_list.update([a, b, c])
        views = await asyncio.gather(*futures)

        assert [view.model for view in views] == [a, b, c]
        assert [view.index for view in views] == [0, 1, 2]
        assert view_list.models == [a, b, c]

    @pytest.mark.asyncio
    async def test_shared_prefix_kept(self, view_list, created):
        a, b, c, d = object(), object(), object(), object()
        first = view_list.update([a, b, c])
        await asyncio.gather(*first)

        second = view_list.update([a, b, d])
        await asyncio.gather(*second)
        await settle()

        assert second[0] is first[0]
        assert second[1] is first[1]
        assert second[2] is not first[2]
        assert created[2].removed == 1
        assert created[0].removed == 0
        assert created[3].model is d
        assert created[3].index == 2

    @pytest.mark.asyncio
    async def test_identity_not_equality(self, view_list, created):
        first = view_list.update([[1], [2]])
        await asyncio.gather(*first)

        second = view_list.update([[1], [2]])
        await asyncio.gather(*second)
        await settle()

        assert second[0] is not first[0]
        assert [view.removed for view in created[:2]] == [1, 1]

    @pytest.mark.asyncio
    async def test_reorder_recreates_from_divergence(self, view_list, created):
        a, b, c = object(), object(), object()
        first = view_list.update([a, b, c])
        await asyncio.gather(*first)

        second = view_list.update([a, c, b])
        await asyncio.gather(*second)
        await settle()

        assert second[0] is first[0]
        assert [view.removed for view in created[:3]] == [0, 1, 1]
        assert len(created) == 5

    @pytest.mark.asyncio
    async def test_shrink_to_empty(self, view_list, created):
        first = view_list.update([object(), object()])
        await asyncio.gather(*first)

        assert view_list.update([]) == []
        await settle()

        assert [view.removed for view in created] == [1, 1]

    @pytest.mark.asyncio
    async def test_removal_waits_for_pending_creation(self):
        gate = asyncio.Event()
        views = []

        async def create_view(model, index):
            await gate.wait()
            view = FakeView(model, index)
            views.append(view)
            return view

        view_list = ViewList(create_view)
        view_list.update([object()])
        view_list.update([])
        await settle()
        assert views == []

        gate.set()
        await settle()

        assert views[0].removed == 1

    @pytest.mark.asyncio
    async def test_removal_fires_once_per_index(self, view_list, created):
        a, b = object(), object()
        await asyncio.gather(*view_list.update([a, b]))

        view_list.update([a])
        view_list.update([a])
        await settle()

        assert created[1].removed == 1

    @pytest.mark.asyncio
    async def test_override_callbacks(self, view_list):
        a = object()
        create = MagicMock(return_value="plain-view")
        remove = MagicMock()

        futures = view_list.update([a], create_view=create, remove_view=remove)
        assert await futures[0] == "plain-view"

        view_list.update([], remove_view=remove)
        await settle()

        create.assert_called_once_with(a, 0)
        remove.assert_called_once_with("plain-view")


class TestFailures:
    """Test failure handling during creation and removal."""

    @pytest.mark.asyncio
    async def test_creation_failure_keeps_slot(self):
        async def create_view(model, index):
            if index == 1:
                raise RuntimeError("render failed")
            return FakeView(model, index)

        view_list = ViewList(create_view)
        futures = view_list.update([object(), object(), object()])
        results = await asyncio.gather(*futures, return_exceptions=True)

        assert len(view_list.views) == 3
        assert isinstance(results[1], RuntimeError)
        assert results[2].index == 2

    @pytest.mark.asyncio
    async def test_sync_creation_failure_keeps_slot(self):
        def create_view(model, index):
            raise ValueError("bad model")

        view_list = ViewList(create_view)
        (future,) = view_list.update([object()])

        with pytest.raises(ValueError):
            await future

    @pytest.mark.asyncio
    async def test_failed_view_not_removed(self):
        remove = MagicMock()

        async def create_view(model, index):
            raise RuntimeError("nope")

        view_list = ViewList(create_view, remove)
        futures = view_list.update([object()])
        await asyncio.gather(*futures, return_exceptions=True)

        view_list.update([])
        await settle()

        remove.assert_not_called()

    @pytest.mark.asyncio
    async def test_remove_failure_is_isolated(self, created):
        async def create_view(model, index):
            view = FakeView(model, index)
            created.append(view)
            return view

        def remove_view(view):
            if view.index == 0:
                raise RuntimeError("teardown failed")
            view.remove()

        view_list = ViewList(create_view, remove_view)
        await asyncio.gather(*view_list.update([object(), object()]))

        view_list.update([])
        await settle()

        assert created[1].removed == 1


class TestRemove:
    """Test removing the whole list."""

    @pytest.mark.asyncio
    async def test_remove_all(self, view_list, created):
        view_list.update([object(), object()])

        await view_list.remove()

        assert [view.removed for view in created] == [1, 1]
        assert view_list.views == []
        assert view_list.models == []

    @pytest.mark.asyncio
    async def test_remove_skips_failed_views(self):
        async def create_view(model, index):
            if index == 0:
                raise RuntimeError("nope")
            return FakeView(model, index)

        view_list = ViewList(create_view)
        futures = view_list.update([object(), object()])

        await view_list.remove()

        second = futures[1].result()
        assert second.removed == 1
