"""
Tests for the snapshot codec and custom font registry.
"""

import copy
import json

import pytest

from inkdeck.document import Document
from inkdeck.errors import ResourceFetchError, ValidationError
from inkdeck.fonts import FontFace, FontRegistry, font_id
from inkdeck.models import FRAME_ID, DocumentSize, element_from_data
from inkdeck.persistence import SnapshotCodec, choose_snapshot, with_extension

from conftest import attachment, image, rectangle, text


def face(family: str, weight: int = 400) -> dict:
    return {
        'fontFamily': family,
        'src': f'url(https://fonts.example/{family}.woff2)',
        'fontStyle': 'normal',
        'fontWeight': weight,
        'fontDisplay': 'swap',
        'unicodeRange': '',
        'subset': '',
    }


def normalized(record: dict) -> dict:
    return element_from_data(record).to_data()


def frame_record(width=1280, height=720) -> dict:
    doc = Document(DocumentSize(width, height))
    return doc.current_slide.frame.to_data()


@pytest.fixture
def snapshot() -> dict:
    """A GC-normalized snapshot: every file and font is referenced"""
    return {
        'name': 'roadmap',
        'document': {
            'backgroundColor': '#fdf6e3',
            'slides': [
                {'id': 's1', 'elements': [frame_record(), normalized(rectangle('r1')),
                                          normalized(text('t1', 'Hello', font_family=font_id('Caveat')))]},
                {'id': 's2', 'elements': [frame_record(), normalized(image('i1', file_id='f1'))]},
            ],
            'files': {'f1': attachment('f1', created=3)},
            'documentSize': {'width': 1280, 'height': 720},
        },
        'fonts': {'customFonts': {'Caveat': [face('Caveat'), face('Caveat', 700)]}},
    }


@pytest.fixture
def codec(document, fonts) -> SnapshotCodec:
    return SnapshotCodec(document, fonts)


# =============================================================================
# Round trip
# =============================================================================

class TestRoundTrip:

    def test_export_of_import_is_identity(self, codec, snapshot):
        codec.import_snapshot(copy.deepcopy(snapshot))
        assert codec.export_snapshot() == snapshot

    def test_import_replaces_document(self, codec, document, snapshot):
        codec.import_snapshot(snapshot)
        assert [s.id for s in document.slides] == ['s1', 's2']
        assert document.document_size == DocumentSize(1280, 720)
        assert document.background_color == '#fdf6e3'
        assert document.filename == 'roadmap'
        assert document.current_slide_index == 0

    def test_dumps_uses_two_space_indent(self, codec):
        assert '\n  "document"' in codec.dumps()

    def test_save_and_load(self, tmp_path, snapshot):
        source = SnapshotCodec(Document(), FontRegistry())
        source.import_snapshot(snapshot)
        path = source.save(str(tmp_path / 'deck'))
        assert path.endswith('deck.ink')

        target_doc = Document()
        target = SnapshotCodec(target_doc, FontRegistry())
        target.load(path)
        assert target_doc.filename == 'deck'
        assert [s.id for s in target_doc.slides] == ['s1', 's2']

    def test_missing_name_uses_file_stem(self, tmp_path, codec, document, snapshot):
        del snapshot['name']
        path = tmp_path / 'untitled-talk.ink'
        path.write_text(json.dumps(snapshot), encoding='utf-8')
        codec.load(str(path))
        assert document.filename == 'untitled-talk'

    def test_extension_is_not_doubled(self):
        assert with_extension('a.ink') == 'a.ink'
        assert with_extension('a') == 'a.ink'


# =============================================================================
# Garbage collection
# =============================================================================

class TestGarbageCollection:

    def test_unreferenced_files_are_dropped(self, codec, document, snapshot):
        codec.import_snapshot(snapshot)
        document.set_files({**document.files, 'orphan': copy.deepcopy(document.files['f1'])})
        exported = codec.export_snapshot()
        assert set(exported['document']['files']) == {'f1'}

    def test_unused_font_families_are_dropped(self, codec, fonts, snapshot):
        fonts.add_fonts([FontFace.from_data(face('Unused'))])
        codec.import_snapshot(snapshot)
        exported = codec.export_snapshot()
        assert set(exported['fonts']['customFonts']) == {'Caveat'}

    def test_gc_does_not_touch_document(self, codec, document, snapshot):
        codec.import_snapshot(snapshot)
        document.set_files({**document.files, 'orphan': copy.deepcopy(document.files['f1'])})
        codec.export_snapshot()
        assert 'orphan' in document.files


# =============================================================================
# Import validation
# =============================================================================

class TestImportValidation:

    @pytest.mark.parametrize("mutate", [
        lambda s: s.pop('document'),
        lambda s: s['document'].update(slides=[]),
        lambda s: s['document']['slides'][1]['elements'].append({'id': 'x'}),
        lambda s: s['document']['slides'][0]['elements'].append(frame_record()),
        lambda s: s['document'].update(files={'f1': {'dataURL': 'http://not-inline'}}),
        lambda s: s['document'].update(documentSize={'width': 'wide'}),
        lambda s: s['fonts'].update(customFonts={'Caveat': [{'src': 'x'}]}),
        lambda s: s['document']['slides'].append(copy.deepcopy(s['document']['slides'][0])),
        lambda s: s['fonts'].update(customFonts={'Caveat': [face('Existing')]}),
    ])
    def test_corrupt_snapshot_leaves_state_untouched(self, codec, document, fonts, snapshot, mutate):
        fonts.add_fonts([FontFace.from_data(face('Existing'))])
        before = document.snapshot()
        mutate(snapshot)
        with pytest.raises(ValidationError):
            codec.import_snapshot(snapshot)
        assert document.snapshot() == before
        assert fonts.families() == ['Existing']

    def test_invalid_json(self, codec):
        with pytest.raises(ValidationError):
            codec.loads("{not json")

    def test_frame_is_added_when_missing(self, codec, document, snapshot):
        snapshot['document']['slides'][1]['elements'] = [rectangle('only')]
        codec.import_snapshot(snapshot)
        frame = document.slides[1].frame
        assert frame is not None and frame.id == FRAME_ID
        assert (frame.width, frame.height) == (1280, 720)


# =============================================================================
# Fonts
# =============================================================================

class TestFontMerge:

    def test_existing_family_is_never_overwritten(self, codec, fonts, snapshot):
        fonts.add_fonts([FontFace.from_data(face('Caveat', 300))])
        codec.import_snapshot(snapshot)
        assert [f.font_weight for f in fonts.custom_fonts['Caveat']] == [300]

    def test_faces_filed_under_another_family_are_rejected(self, codec, fonts, snapshot):
        fonts.add_fonts([FontFace.from_data(face('Virgil', 300))])
        snapshot['fonts']['customFonts'] = {'Caveat': [face('Virgil', 700)]}
        with pytest.raises(ValidationError):
            codec.import_snapshot(snapshot)
        assert [f.font_weight for f in fonts.custom_fonts['Virgil']] == [300]

    def test_missing_family_is_added(self, codec, fonts, snapshot):
        codec.import_snapshot(snapshot)
        assert [f.font_weight for f in fonts.custom_fonts['Caveat']] == [400, 700]
        assert fonts.family_for_id(font_id('Caveat')) == 'Caveat'

    def test_font_id_is_stable_and_offset(self):
        assert font_id('Caveat') == font_id('Caveat')
        assert font_id('Caveat') != font_id('Virgil')
        assert font_id('Caveat') > 1000

    def test_collision_is_detected(self, fonts, monkeypatch):
        monkeypatch.setattr('inkdeck.fonts.font_id', lambda family: 4242)
        fonts.add_fonts([FontFace.from_data(face('A'))])
        with pytest.raises(ValidationError):
            fonts.add_fonts([FontFace.from_data(face('B'))])

    def test_remove_font(self, fonts):
        fonts.add_fonts([FontFace.from_data(face('A'))])
        fonts.remove_font('A')
        assert 'A' not in fonts
        assert fonts.family_for_id(font_id('A')) is None


# =============================================================================
# Fetched snapshots
# =============================================================================

class TestChooseSnapshot:

    def test_single_snapshot_passes_through(self, snapshot):
        assert choose_snapshot(snapshot) is snapshot

    def test_named_candidate(self, snapshot):
        other = {'name': 'other'}
        candidates = [{'filename': 'a.ink', 'content': other}, {'filename': 'b.ink', 'content': snapshot}]
        assert choose_snapshot(candidates, 'b.ink') is snapshot

    def test_first_candidate_without_name(self, snapshot):
        candidates = [{'filename': 'a.ink', 'content': snapshot}, {'filename': 'b.ink', 'content': {}}]
        assert choose_snapshot(candidates) is snapshot

    def test_empty_list(self):
        with pytest.raises(ResourceFetchError):
            choose_snapshot([])

    def test_unknown_name(self, snapshot):
        with pytest.raises(ResourceFetchError):
            choose_snapshot([{'filename': 'a.ink', 'content': snapshot}], 'missing.ink')
