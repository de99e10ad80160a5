"""Struct decoding: named fields first, positional fallback."""
from collections import namedtuple

from app.ledger.decoding import COURSE_FIELDS, FEEDBACK_FIELDS, TEACHER_FIELDS, as_int_list, decode_struct

FEEDBACK_TUPLE = ("0xabc", "T1", "101", [5, 4, 3, 2], 14, 1, "great", 1700000000)


def test_positional_tuple():
    decoded = decode_struct(FEEDBACK_TUPLE, FEEDBACK_FIELDS)
    assert decoded["facultyId"] == "T1"
    assert decoded["courseId"] == "101"
    assert decoded["ratings"] == [5, 4, 3, 2]
    assert decoded["totalScore"] == 14
    assert decoded["comments"] == "great"


def test_mapping_wins_over_position():
    # keys deliberately out of order
    raw = {"exists": True, "courseName": "Algorithms", "courseId": "101"}
    assert decode_struct(raw, COURSE_FIELDS) == {"courseId": "101", "courseName": "Algorithms", "exists": True}


def test_named_tuple():
    TeacherStruct = namedtuple("TeacherStruct", ["teacherId", "name", "isRegistered"])
    decoded = decode_struct(TeacherStruct("T9", "Linus", True), TEACHER_FIELDS)
    assert decoded == {"teacherId": "T9", "name": "Linus", "isRegistered": True}


def test_attribute_object():
    class Struct:
        teacherId = "T3"
        name = "Barbara"
        isRegistered = False

    assert decode_struct(Struct(), TEACHER_FIELDS)["name"] == "Barbara"


def test_short_tuple_fills_missing_with_none():
    decoded = decode_struct(("T1",), TEACHER_FIELDS)
    assert decoded == {"teacherId": "T1", "name": None, "isRegistered": None}


def test_as_int_list():
    assert as_int_list(("4", 3, 2.0)) == [4, 3, 2]
    assert as_int_list(None) == []
