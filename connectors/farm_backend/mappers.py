"""Backend record <-> model mapping.

The farm backend speaks Portuguese column names (``lotes.quantidade``,
``vendas.data_venda``...) and carries a few facts in free text (the group of a
sale lives in its notes as ``[Galpao:<id>]``). Everything in this module
converts between that wire format and the models in core.models; nothing
outside connectors/farm_backend sees backend field names.
"""

import re
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional, Type

from core.models import (
    Batch,
    BatchPhase,
    BatchStatus,
    Cage,
    CageStatus,
    CreateBatchRequest,
    CreateCageRequest,
    CreateFeedRecordRequest,
    CreateGroupRequest,
    CreateIncubationRequest,
    CreateSaleRequest,
    EntityKind,
    FeedRecord,
    FinalizeIncubationRequest,
    Group,
    GroupClassification,
    Incubation,
    IncubationStatus,
    PaymentMethod,
    Sale,
    SaleStatus,
    UpdateBatchRequest,
    UpdateCageRequest,
    UpdateFeedRecordRequest,
    UpdateGroupRequest,
    UpdateIncubationRequest,
    UpdateSaleRequest,
)
from feed_classifier import classify_phase, match_classification


# Query parameter holding the parent id, per kind and parent kind
PARENT_QUERY_FIELDS = {
    EntityKind.CAGE: {EntityKind.GROUP: "galpao_id"},
    EntityKind.BATCH: {EntityKind.CAGE: "gaiola_id"},
    EntityKind.FEED_RECORD: {EntityKind.BATCH: "lote_id", EntityKind.GROUP: "galpao_id"},
    EntityKind.SALE: {EntityKind.GROUP: "galpao_id"},
}

# Group type tags used by the fixed-group registry
_GROUP_TYPE_TAGS = {
    "postura": GroupClassification.PRODUCERS,
    "males": GroupClassification.MALES,
    "breeders": GroupClassification.BREEDERS,
}

_GROUP_MARKER = re.compile(r"\[Galpao:([^\]]+)\]")
_BATCH_NUMBER = re.compile(r"Lote: (LOTE-\d+)")
_COMPLETED_STATUSES = ("finalizado", "finalizada", "concluido")


def _enum_or(enum_cls: Type[Enum], value: Any, default: Optional[Enum]) -> Optional[Enum]:
    """Coerce a backend value into an enum, falling back for unknown values."""
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


# =============================================================================
# Groups (galpoes)
# =============================================================================

def group_from_backend(data: Dict[str, Any]) -> Group:
    raw_type = (data.get("tipo") or data.get("type") or "").strip()
    classification = _GROUP_TYPE_TAGS.get(raw_type.lower()) or match_classification(raw_type)
    if classification is None:
        classification = match_classification(data.get("nome") or data.get("name") or "")

    return Group(
        id=str(data["id"]),
        name=data.get("nome") or data.get("name") or "",
        classification=classification,
        description=data.get("descricao") or data.get("description"),
        created_at=data.get("created_at"),
        updated_at=data.get("updated_at"),
    )


def group_to_backend(payload: CreateGroupRequest) -> Dict[str, Any]:
    return _drop_none({
        "nome": payload.name,
        "tipo": payload.classification.value,
        "descricao": payload.description,
    })


def group_update_to_backend(payload: UpdateGroupRequest) -> Dict[str, Any]:
    changes = payload.changes()
    body = {}
    if "name" in changes:
        body["nome"] = changes["name"]
    if "classification" in changes:
        body["tipo"] = changes["classification"]
    if "description" in changes:
        body["descricao"] = changes["description"]
    return body


# =============================================================================
# Cages (gaiolas)
# =============================================================================

def cage_from_backend(data: Dict[str, Any]) -> Cage:
    return Cage(
        id=str(data["id"]),
        group_id=str(data.get("galpao_id") or data.get("groupId") or ""),
        name=data.get("nome") or data.get("name") or "",
        capacity=data.get("capacidade") or data.get("capacity") or 0,
        current_quantity=data.get("quantidade_atual") or data.get("currentQuantity") or 0,
        status=_enum_or(CageStatus, data.get("status"), CageStatus.ACTIVE),
    )


def cage_to_backend(payload: CreateCageRequest) -> Dict[str, Any]:
    return {
        "nome": payload.name,
        "galpao_id": payload.group_id,
        "capacidade": payload.capacity,
        "quantidade_atual": 0,
        "status": payload.status.value,
    }


def cage_update_to_backend(payload: UpdateCageRequest) -> Dict[str, Any]:
    names = {
        "name": "nome",
        "group_id": "galpao_id",
        "capacity": "capacidade",
        "current_quantity": "quantidade_atual",
        "status": "status",
    }
    return {names[k]: v for k, v in payload.changes().items()}


# =============================================================================
# Batches (lotes)
# =============================================================================

_BATCH_STATUS_TO_BACKEND = {
    BatchStatus.ACTIVE: "ativo",
    BatchStatus.SOLD: "vendido",
    BatchStatus.INACTIVE: "finalizado",
}


def batch_from_backend(data: Dict[str, Any]) -> Batch:
    status = data.get("status")
    if status == "ativo":
        batch_status = BatchStatus.ACTIVE
    elif status == "vendido":
        batch_status = BatchStatus.SOLD
    else:
        batch_status = BatchStatus.INACTIVE

    birth_date = data.get("data_nascimento")
    phase = _enum_or(BatchPhase, data.get("fase"), None)
    if phase is None:
        phase = classify_phase(birth_date)

    return Batch(
        id=str(data["id"]),
        cage_id=data.get("gaiola_id") or data.get("caixa_id"),
        name=data.get("name") or "",
        species=data.get("linhagem") or "Codornas Japonesas",
        quantity=data.get("quantidade") or 0,
        birth_date=birth_date,
        status=batch_status,
        phase=phase,
        notes=data.get("observacoes") or None,
        males=data.get("males") or 0,
        females=data.get("females") or 0,
    )


def batch_to_backend(payload: CreateBatchRequest) -> Dict[str, Any]:
    return _drop_none({
        "name": payload.name,
        "linhagem": payload.species,
        "quantidade": payload.quantity,
        "data_nascimento": _iso(payload.birth_date) or date.today().isoformat(),
        "gaiola_id": payload.cage_id,
        "status": "ativo",
        "fase": payload.phase.value if payload.phase else None,
        "observacoes": payload.notes,
        "males": payload.males,
        "females": payload.females,
    })


def batch_update_to_backend(payload: UpdateBatchRequest) -> Dict[str, Any]:
    names = {
        "name": "name",
        "species": "linhagem",
        "quantity": "quantidade",
        "cage_id": "gaiola_id",
        "birth_date": "data_nascimento",
        "phase": "fase",
        "notes": "observacoes",
        "males": "males",
        "females": "females",
    }
    changes = payload.changes()
    body = {names[k]: v for k, v in changes.items() if k in names}
    if payload.status is not None:
        body["status"] = _BATCH_STATUS_TO_BACKEND[payload.status]
    return body


# =============================================================================
# Feed consumption
# =============================================================================

def feed_record_from_backend(data: Dict[str, Any]) -> FeedRecord:
    batch_id = data.get("lote_id")
    return FeedRecord(
        id=str(data["id"]),
        batch_id=batch_id,
        group_id=None if batch_id else data.get("galpao_id"),
        feed_type=data.get("feed_type_name") or "",
        quantity=data.get("quantidade_kg") or 0,
        date=data.get("data_consumo"),
        notes=data.get("observacoes"),
    )


def feed_record_to_backend(payload: CreateFeedRecordRequest) -> Dict[str, Any]:
    return {
        "galpao_id": payload.group_id,
        "lote_id": payload.batch_id,
        "data_consumo": _iso(payload.date),
        "quantidade_kg": str(payload.quantity),
        "feed_type_name": payload.feed_type,
        "observacoes": payload.notes,
    }


def feed_record_update_to_backend(payload: UpdateFeedRecordRequest) -> Dict[str, Any]:
    names = {
        "feed_type": "feed_type_name",
        "quantity": "quantidade_kg",
        "date": "data_consumo",
        "notes": "observacoes",
    }
    return {names[k]: v for k, v in payload.changes().items()}


# =============================================================================
# Incubation
# =============================================================================

def _incubation_status(data: Dict[str, Any]) -> IncubationStatus:
    status = data.get("status")
    if status in _COMPLETED_STATUSES:
        return IncubationStatus.COMPLETED
    if status == "failed":
        return IncubationStatus.FAILED
    if status == "hatched" or (data.get("pintos_nascidos") or 0) > 0:
        return IncubationStatus.HATCHED
    return IncubationStatus.INCUBATING


def incubation_from_backend(data: Dict[str, Any]) -> Incubation:
    status = _incubation_status(data)
    notes = data.get("observacoes")

    batch_number = data.get("numero_lote")
    if not batch_number and notes:
        match = _BATCH_NUMBER.search(notes)
        batch_number = match.group(1) if match else None

    finalization = None
    if status is IncubationStatus.COMPLETED and data.get("data_real_nascimento"):
        finalization = {
            "actual_hatch_date": data["data_real_nascimento"],
            "hatched_quantity": data.get("pintos_nascidos") or 0,
            "losses": data.get("perdas") or 0,
            "growth_box_id": data.get("caixa_id"),
        }

    return Incubation(
        id=str(data["id"]),
        start_date=data.get("data_colocacao"),
        status=status,
        egg_quantity=data.get("quantidade_ovos") or 0,
        expected_hatch_date=data.get("data_prevista_nascimento"),
        batch_number=batch_number,
        notes=notes,
        finalization=finalization,
    )


def incubation_to_backend(payload: CreateIncubationRequest) -> Dict[str, Any]:
    return {
        "data_colocacao": _iso(payload.start_date),
        "quantidade_ovos": payload.egg_quantity,
        "data_prevista_nascimento": _iso(payload.expected_hatch_date),
        "numero_lote": payload.batch_number,
        "observacoes": f"Lote: {payload.batch_number} | Espécie: {payload.species} | {payload.notes or ''}",
    }


def incubation_update_to_backend(payload: UpdateIncubationRequest) -> Dict[str, Any]:
    names = {
        "status": "status",
        "notes": "observacoes",
        "expected_hatch_date": "data_prevista_nascimento",
    }
    return {names[k]: v for k, v in payload.changes().items()}


def incubation_finalize_to_backend(payload: FinalizeIncubationRequest) -> Dict[str, Any]:
    return {
        "data_real_nascimento": _iso(payload.actual_hatch_date),
        "pintos_nascidos": payload.hatched_quantity,
        "perdas": payload.losses,
        "observacoes": payload.notes,
        "caixa_id": payload.growth_box_id,
    }


# =============================================================================
# Sales (vendas)
# =============================================================================

def extract_group_marker(notes: Optional[str]) -> Optional[str]:
    """Group id stored in sale notes as ``[Galpao:<id>]``."""
    if not notes:
        return None
    match = _GROUP_MARKER.search(notes)
    if not match or match.group(1) == "warehouse":
        return None
    return match.group(1)


def sale_from_backend(data: Dict[str, Any]) -> Sale:
    items = data.get("vendas_itens") or data.get("itens") or []
    main_item = items[0] if items else {}
    notes = data.get("observacoes")

    return Sale(
        id=str(data["id"]),
        group_id=data.get("galpao_id") or extract_group_marker(notes),
        batch_id=data.get("lote_id"),
        quantity=main_item.get("quantidade") or 0,
        date=data.get("data_venda"),
        unit_price=main_item.get("preco_unitario") or 0,
        total_price=data.get("valor_total") or 0,
        buyer=data.get("cliente_nome"),
        product_type=main_item.get("produto_nome") or "Unknown",
        payment_method=_enum_or(PaymentMethod, data.get("metodo_pagamento"), PaymentMethod.OTHER),
        status=_enum_or(SaleStatus, data.get("status"), SaleStatus.PENDING),
        notes=notes,
    )


def sale_to_backend(payload: CreateSaleRequest) -> Dict[str, Any]:
    if payload.items:
        items = [
            {
                "produto_nome": item.product_name,
                "quantidade": item.quantity,
                "preco_unitario": str(item.unit_price),
                "item_estoque_id": item.stock_item_id,
            }
            for item in payload.items
        ]
    else:
        items = [{
            "produto_nome": payload.product_type,
            "quantidade": payload.quantity,
            "preco_unitario": str(payload.unit_price),
            "item_estoque_id": None,
        }]

    notes = with_group_marker(payload.notes, payload.group_id)

    return {
        "cliente_nome": payload.buyer,
        "cliente_contato": None,
        "valor_total": str(payload.total_price),
        "data_venda": _iso(payload.date),
        "metodo_pagamento": payload.payment_method.value,
        "observacoes": notes,
        "itens": items,
    }


def with_group_marker(notes: Optional[str], group_id: Optional[str]) -> str:
    """Notes text carrying exactly one ``[Galpao:<id>]`` marker for group_id."""
    text = _GROUP_MARKER.sub("", notes or "").strip()
    if group_id:
        text = f"{text} [Galpao:{group_id}]".strip()
    return text


def sale_update_to_backend(payload: UpdateSaleRequest, group_id: Optional[str] = None) -> Dict[str, Any]:
    """Non-status fields; status goes through its own endpoint.

    The group of a sale lives only in its notes, so edited notes are sent
    with the marker of ``group_id`` (the sale's current group) re-applied.
    """
    names = {
        "buyer": "cliente_nome",
        "notes": "observacoes",
        "payment_method": "metodo_pagamento",
    }
    data = {names[k]: v for k, v in payload.changes().items() if k in names}
    if "observacoes" in data:
        data["observacoes"] = with_group_marker(data["observacoes"], group_id)
    return data
