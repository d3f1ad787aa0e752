import datetime
import ipaddress
import json
from dataclasses import dataclass, field
from typing import Any, Optional

import pytest

from pbench.marshal import Marshaller, to_snake_case


def dumps(value):
    return json.dumps(value, separators=(",", ":"))


@dataclass
class A:
    id: int

    def __str__(self):
        return "struct A"


@dataclass
class B:
    pai: float


@dataclass
class Item:
    name: str
    price: float
    quantity: int
    discount: bool
    error: Exception
    arr: list
    customers: dict


@dataclass
class Company:
    name: str
    address: str
    open: bool


@dataclass
class Product:
    name: str
    price: float
    quantity: int
    discount: bool
    orders: list
    company: Company


@dataclass
class Priced:
    price: float
    desc: Any = None


@dataclass
class NestedStruct:
    Info: str = ""
    Map: dict = field(default_factory=dict)
    NextLevel: Optional["NestedStruct"] = None
    Note: str = ""
    Remark: str = ""
    Count: int = 0
    Sum: float = 0.0
    Avg: float = 0.0


@pytest.mark.parametrize(
    "name, expected",
    [
        ("SnakeField", "snake_field"),
        ("NextLevel", "next_level"),
        ("already_snake", "already_snake"),
        ("ABC", "a_b_c"),
        ("structArr", "struct_arr"),
        ("", ""),
    ],
)
def test_to_snake_case(name, expected):
    assert to_snake_case(name) == expected


def test_string_array():
    assert Marshaller(["a", "b", "c", "d\ne"]).as_array() == ["a", "b", "c", "d\ne"]


def test_string_map_sorted():
    result = Marshaller({"name": "Tom", "friend": "Jerry"}).as_object()
    assert dumps(result) == '{"friend":"Jerry","name":"Tom"}'


def test_multi_type_map():
    value = {
        "name": "Tom",
        "married": True,
        123: ["a", "c", 16, 3.2],
        False: 44,
        "SnakeField": 10.555,
    }
    result = Marshaller(value).as_object()
    assert dumps(result) == (
        '{"123":["a","c",16,3.2],"snake_field":10.555,"false":44,"married":true,"name":"Tom"}'
    )


def test_int_slice_and_tuple():
    assert Marshaller([1, 2, 3, 4, 5]).as_array() == [1, 2, 3, 4, 5]
    assert Marshaller(("first", "second", "third")).as_array() == ["first", "second", "third"]


def test_mixed_type_slice():
    item = Item(
        name="an item",
        price=3.14,
        quantity=6,
        discount=True,
        error=ValueError("some interesting error"),
        arr=[A(101), B(3.14)],
        customers={12: "Zhang", 13: "Sun", 24: "Li", 96: "Zhou"},
    )
    mixed = [8, 12, 10086, "a string", True, 3.1415926, item]
    result = Marshaller(mixed, nested_level_limit=4).as_array()
    assert dumps(result) == (
        '[8,12,10086,"a string",true,3.1415926,{"name":"an item","price":3.14,"quantity":6,'
        '"discount":true,"error":"some interesting error","arr":[{"id":101},{"pai":3.14}],'
        '"customers":{"12":"Zhang","13":"Sun","24":"Li","96":"Zhou"}}]'
    )


def test_mixed_type_slice_default_depth_uses_placeholder():
    item = Item("x", 1.0, 1, False, ValueError("e"), [A(1)], {})
    result = Marshaller([item]).as_array()
    assert result[0]["arr"] == ["<A Value>"]


def test_stringer_elements():
    assert Marshaller([ipaddress.ip_address("192.168.1.1")]).as_array() == ["192.168.1.1"]


def test_struct():
    product = Product(
        name="an item",
        price=3.14,
        quantity=6,
        discount=True,
        orders=[6001, 6002, 6003],
        company=Company(name="Banana", address="12345 Xyz Rd", open=True),
    )
    assert dumps(Marshaller(product).as_object()) == (
        '{"name":"an item","price":3.14,"quantity":6,"discount":true,"orders":[6001,6002,6003],'
        '"company":{"name":"Banana","address":"12345 Xyz Rd","open":true}}'
    )


def test_array_as_object():
    orders = [6001, "6002", 6003, "hello world", Priced(price=3.14)]
    assert dumps(Marshaller(orders).as_object()) == (
        '{"array":[6001,"6002",6003,"hello world",{"price":3.14}]}'
    )


def test_limits():
    obj = NestedStruct(
        Info="level 1",
        NextLevel=NestedStruct(
            Info="level 2",
            Map={
                "another map": {
                    "nested struct": NestedStruct(Info="struct inside a map"),
                    "2nd level map": {2: "two", 10: "ten"},
                },
                "passed": True,
                "structArr": [
                    NestedStruct(Info="level 3", NextLevel=NestedStruct(Info="level 4"))
                ],
            },
            NextLevel=NestedStruct(Info="level 3", NextLevel=NestedStruct(Info="level 4")),
        ),
        Map={
            "an array": [1, 2, 3, 4, 5, 6, 7, 8],
            "id": 15,
            "price": 12.3,
            "comment": "this is very good",
            "caption": "Holding Hands",
            "singer": "Julie Sue",
            "url": "https://example.com/video",
            "liked": False,
            "thumbs_ups": 22000,
        },
        Note="nothing to note",
    )
    result = Marshaller(obj, nested_level_limit=3, field_or_element_limit=7).as_object()
    assert dumps(result) == (
        '{"info":"level 1","map":{"an array":[1,2,3,4,5,6,7,"..."],"caption":"Holding Hands",'
        '"comment":"this is very good","id":15,"liked":false,"price":12.3,"singer":"Julie Sue",'
        '"...":"<map truncated>"},"next_level":{"info":"level 2","map":{"another map":"<dict Value>",'
        '"passed":true,"struct_arr":"<list Value>"},"next_level":{"info":"level 3",'
        '"map":"<dict Value>","next_level":"<NestedStruct Value>","note":"","remark":"","count":0,'
        '"sum":0.0,"...":"<field truncated>"},"note":"","remark":"","count":0,"sum":0.0,'
        '"...":"<field truncated>"},"note":"nothing to note","remark":"","count":0,"sum":0.0,'
        '"...":"<field truncated>"}'
    )


def test_default_element_limit():
    result = Marshaller(list(range(20))).as_array()
    assert result == list(range(15)) + ["..."]


def test_none_elements_skipped_but_counted():
    result = Marshaller([None, 1, None, 2], field_or_element_limit=3).as_array()
    assert result == [1, "..."]


def test_nested_list_in_array_becomes_object():
    assert Marshaller([[1, 2]]).as_array() == [{"array": [1, 2]}]


def test_time_and_duration():
    moment = datetime.datetime(2024, 4, 15, 11, 20, 42)
    result = Marshaller([moment, datetime.timedelta(seconds=2)]).as_array()
    assert result == ["2024-04-15T11:20:42", 2000]


def test_scalar_as_object():
    assert Marshaller(42).as_object() == {"kind": "int", "type": "int", "value": "42"}


def test_as_array_on_non_sequence_is_empty():
    assert Marshaller({"a": 1}).as_array() == []


def test_nest_increments_level():
    marshaller = Marshaller([1])
    assert marshaller.nest().nested_level == 2