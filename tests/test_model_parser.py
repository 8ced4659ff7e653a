from __future__ import annotations

import pytest

from model_parser import count_ctes, extract_config, infer_model_type, parse_model


MART_MODEL = "\n".join(
    [
        "{{ config(materialized='incremental', unique_key='order_id', on_schema_change=fail) }}",
        "",
        "with orders as (",
        "    select * from {{ ref('stg_orders') }}",
        "),",
        "payments as (",
        "    select * from {{ ref('stg_payments') }}",
        ")",
        "select",
        "    orders.order_id,",
        "    orders.customer_id as customer,",
        "    coalesce(payments.amount, 0) as amount",
        "from orders",
        "left join payments using (order_id)",
    ]
)


def test_type_first_match_wins() -> None:
    assert parse_model("select 1", "stg_int_orders.sql").type == "staging"


def test_type_from_prefixes() -> None:
    assert infer_model_type("int_orders.sql") == "intermediate"
    assert infer_model_type("fct_orders.sql") == "fact"
    assert infer_model_type("models/marts/dim_customers.sql") == "dimension"
    assert infer_model_type("STG_Orders.sql") == "staging"


def test_type_snapshot_and_unknown() -> None:
    assert infer_model_type("orders_snapshot.sql") == "snapshot"
    assert infer_model_type("snapshots/orders.sql") == "snapshot"
    assert infer_model_type("orders.sql") == "unknown"


def test_name_drops_directory_and_extension() -> None:
    model = parse_model("select 1", "models/staging/stg_orders.sql")
    assert model.name == "stg_orders"


def test_config_block() -> None:
    model = parse_model(MART_MODEL, "fct_orders.sql")
    assert model.materialization == "incremental"
    assert model.config == {
        "materialized": "incremental",
        "unique_key": "order_id",
        "on_schema_change": "fail",
    }


def test_config_double_quotes_and_duplicate_keys() -> None:
    materialization, config = extract_config(
        '{{ config(materialized="table", tags="a", tags="b") }}'
    )
    assert materialization == "table"
    assert config["tags"] == "b"


def test_config_absent() -> None:
    model = parse_model("select 1 as id", "fct_x.sql")
    assert model.materialization is None
    assert model.config == {}


def test_refs_keep_order_and_duplicates() -> None:
    content = "{{ ref('a') }} join {{ ref('b') }} join {{ ref(\"a\") }}"
    assert parse_model(content, "int_x.sql").refs == ("a", "b", "a")


def test_sources_in_order() -> None:
    content = (
        "select * from {{ source('raw','orders') }} "
        "union all select * from {{ source('raw', 'customers') }}"
    )
    assert parse_model(content, "stg_x.sql").sources == (
        ("raw", "orders"),
        ("raw", "customers"),
    )


def test_cte_count_counts_with_and_continuations() -> None:
    assert count_ctes(MART_MODEL) == 2
    assert count_ctes("select 1") == 0


def test_wildcard_select_gives_no_columns() -> None:
    assert parse_model("select * from raw.orders", "x.sql").columns == ()


def test_columns_from_first_select() -> None:
    content = "\n".join(
        [
            "select",
            "    order_id,",
            "    customer_id as customer,",
            "    coalesce(amount, 0) as amount",
            "from orders",
        ]
    )
    assert parse_model(content, "fct_orders.sql").columns == (
        "order_id",
        "customer",
        "amount",
    )


def test_line_count() -> None:
    assert parse_model("a\nb\nc", "x.sql").line_count == 3
    assert parse_model("a\n", "x.sql").line_count == 2


def test_parse_is_reproducible() -> None:
    assert parse_model(MART_MODEL, "fct_orders.sql") == parse_model(MART_MODEL, "fct_orders.sql")


def test_empty_and_garbage_input_do_not_raise() -> None:
    model = parse_model("", "x.sql")
    assert model.type == "unknown"
    assert model.refs == () and model.sources == () and model.columns == ()
    assert model.line_count == 1

    junk = parse_model("{{ config( ))) ref( source('a' select from", "stg_junk.sql")
    assert junk.refs == ()
    assert junk.sources == ()


def test_parsed_model_cannot_be_changed_in_place() -> None:
    model = parse_model("{{ config(materialized='table') }}\nselect 1 from {{ ref('a') }}", "int_x.sql")
    with pytest.raises(AttributeError):
        model.refs.append("b")
    with pytest.raises(TypeError):
        model.config["unique_key"] = "id"
    assert model.refs == ("a",)
    assert "unique_key" not in model.config


def test_parsed_model_dumps_plain_json_types() -> None:
    data = parse_model(MART_MODEL, "fct_orders.sql").model_dump(mode="json")
    assert data["config"]["unique_key"] == "order_id"
    assert data["refs"] == ["stg_orders", "stg_payments"]
