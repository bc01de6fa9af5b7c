"""
Tests for the canonical document model.
"""

import random

import pytest

from inkdeck.document import Document, DocumentEventKind, DocumentState
from inkdeck.models import (
    DEFAULT_DOCUMENT_SIZE, FRAME_ID, DocumentSize, FrameBoundary, element_from_data,
)

from conftest import rectangle


def slide_tags(doc: Document):
    """Name of the tagging rectangle on every slide"""
    return [next(e.id for e in s.elements if e.id != FRAME_ID) for s in doc.slides]


# =============================================================================
# Construction
# =============================================================================

class TestConstruction:

    def test_starts_with_one_framed_slide(self, document):
        assert len(document) == 1
        assert document.current_slide_index == 0
        frame = document.current_slide.frame
        assert frame is not None
        assert (frame.width, frame.height) == (1080, 1080)
        assert frame.locked is True
        assert frame.stroke_style == 'dashed'

    def test_size_is_clamped(self):
        doc = Document(DocumentSize(10, 99999))
        assert doc.document_size == DocumentSize(100, 5400)


# =============================================================================
# Slide mutations
# =============================================================================

class TestSlideMutations:

    def test_add_slide_selects_it(self, document):
        slide = document.add_slide()
        assert document.current_slide.id == slide.id
        assert document.current_slide_index == 1

    def test_add_after_index_keeps_current_slide(self, deck):
        deck.set_current_slide(3)
        current_id = deck.current_slide.id
        deck.add_slide_after_index(1)
        assert len(deck) == 6
        assert deck.current_slide.id == current_id
        assert deck.current_slide_index == 4

    def test_delete_last_remaining_slide_is_noop(self, document):
        before = document.snapshot()
        assert document.delete_slide(0) is False
        after = document.snapshot()
        assert after == before

    def test_delete_before_current_shifts_current(self, deck):
        deck.set_current_slide(3)
        deck.delete_slide(1)
        assert deck.current_slide_index == 2
        assert slide_tags(deck) == ['r0', 'r2', 'r3', 'r4']

    def test_delete_after_current_keeps_current(self, deck):
        deck.set_current_slide(1)
        deck.delete_slide(3)
        assert deck.current_slide_index == 1

    def test_delete_first_while_current(self, deck):
        deck.delete_slide(0)
        assert deck.current_slide_index == 0
        assert slide_tags(deck)[0] == 'r1'

    def test_out_of_range_raises(self, deck):
        with pytest.raises(IndexError):
            deck.delete_slide(9)
        with pytest.raises(IndexError):
            deck.set_current_slide(-1)

    def test_update_twice_emits_once(self, document):
        events = []
        document.subscribe(events.append)
        elements = [e.clone() for e in document.current_slide.elements]
        elements.append(element_from_data(rectangle('box')))

        assert document.update_slide(0, elements) is True
        assert document.update_slide(0, [e.clone() for e in elements]) is False
        updates = [e for e in events if e.kind == DocumentEventKind.SLIDE_UPDATED]
        assert len(updates) == 1

    def test_update_copies_elements(self, document):
        elements = [e.clone() for e in document.current_slide.elements]
        document.update_slide(0, elements)
        elements[0].width = 5
        assert document.current_slide.frame.width == 1080

    def test_update_without_frame_keeps_boundary(self, document):
        assert document.update_slide(0, [element_from_data(rectangle('r'))]) is True
        ids = [e.id for e in document.current_slide.elements]
        assert ids == [FRAME_ID, 'r']
        assert (document.current_slide.frame.width, document.current_slide.frame.height) == (1080, 1080)

    def test_update_restores_deleted_and_resized_frame(self, document):
        frame = document.current_slide.frame.clone()
        frame.is_deleted = True
        frame.width = 50
        document.update_slide(0, [frame, element_from_data(rectangle('r'))])
        stored = document.current_slide.frame
        assert stored.is_deleted is False
        assert (stored.width, stored.height) == (1080, 1080)

    def test_update_keeps_a_single_frame(self, document):
        frames = [FrameBoundary.create(DEFAULT_DOCUMENT_SIZE) for _ in range(2)]
        document.update_slide(0, frames + [element_from_data(rectangle('r'))])
        assert [e.id for e in document.current_slide.elements] == [FRAME_ID, 'r']


# =============================================================================
# Reordering
# =============================================================================

class TestReorder:

    def test_consecutive_block_moves_to_front(self, deck):
        # [A,B,C,D] with the block B..C moved to 0
        deck.delete_slide(4)
        assert deck.reorder_consecutive_slides(1, 2, 0) is True
        assert slide_tags(deck) == ['r1', 'r2', 'r0', 'r3']

    def test_consecutive_block_moves_down(self, deck):
        assert deck.reorder_consecutive_slides(0, 1, 4) is True
        assert slide_tags(deck) == ['r2', 'r3', 'r0', 'r1', 'r4']

    def test_consecutive_block_to_end(self, deck):
        assert deck.reorder_consecutive_slides(1, 2, 5) is True
        assert slide_tags(deck) == ['r0', 'r3', 'r4', 'r1', 'r2']

    def test_reversed_bounds_are_swapped(self, deck):
        assert deck.reorder_consecutive_slides(2, 1, 0) is True
        assert slide_tags(deck) == ['r1', 'r2', 'r0', 'r3', 'r4']

    @pytest.mark.parametrize("target", [1, 2, 3])
    def test_target_inside_block_is_noop(self, deck, target):
        before = slide_tags(deck)
        assert deck.reorder_consecutive_slides(1, 3, target) is False
        assert slide_tags(deck) == before

    def test_single_move(self, deck):
        assert deck.reorder_slides(0, 3) is True
        assert slide_tags(deck) == ['r1', 'r2', 'r3', 'r0', 'r4']

    def test_current_follows_its_slide(self, deck):
        deck.set_current_slide(2)
        current_id = deck.current_slide.id
        deck.reorder_slides(0, 4)
        assert deck.current_slide.id == current_id
        deck.reorder_consecutive_slides(0, 1, 5)
        assert deck.current_slide.id == current_id

    def test_current_index_always_valid(self):
        rng = random.Random(7)
        doc = Document()
        for _ in range(300):
            op = rng.choice(['add', 'after', 'delete', 'move', 'block', 'select'])
            n = len(doc)
            if op == 'add':
                doc.add_slide()
            elif op == 'after':
                doc.add_slide_after_index(rng.randrange(n))
            elif op == 'delete':
                doc.delete_slide(rng.randrange(n))
            elif op == 'move':
                doc.reorder_slides(rng.randrange(n), rng.randrange(n))
            elif op == 'block':
                start = rng.randrange(n)
                end = rng.randrange(start, n)
                doc.reorder_consecutive_slides(start, end, rng.randrange(n + 1))
            else:
                doc.set_current_slide(rng.randrange(n))
            assert 0 <= doc.current_slide_index <= len(doc) - 1


# =============================================================================
# Document-wide settings
# =============================================================================

class TestSettings:

    def test_resize_cascades_to_every_frame(self):
        doc = Document(DocumentSize(1920, 1080))
        doc.add_slide()
        doc.add_slide()
        doc.set_document_size(DocumentSize(1280, 720))
        for slide in doc.slides:
            assert (slide.frame.width, slide.frame.height) == (1280, 720)

    def test_resize_is_clamped(self, document):
        applied = document.set_document_size(DocumentSize(50, 100000))
        assert applied == DocumentSize(100, 5400)
        assert document.current_slide.frame.width == 100

    def test_background_change_emits(self, document):
        events = []
        document.subscribe(events.append)
        document.set_background_color('#000000')
        document.set_background_color('#000000')
        assert [e.kind for e in events] == [DocumentEventKind.BACKGROUND_CHANGED]

    def test_unsubscribe(self, document):
        events = []
        unsubscribe = document.subscribe(events.append)
        unsubscribe()
        document.add_slide()
        assert events == []

    def test_reset_adds_missing_frames(self, document):
        bare = document.snapshot().slides[0]
        bare.elements = [element_from_data(rectangle('a'))]
        document.reset(DocumentState(slides=[bare], document_size=DocumentSize(800, 600)))
        frame = document.current_slide.frame
        assert (frame.width, frame.height) == (800, 600)

    def test_snapshot_is_detached(self, document):
        snap = document.snapshot()
        snap.slides[0].elements.append(FrameBoundary.create(DEFAULT_DOCUMENT_SIZE))
        assert len(document.current_slide.elements) == 1
