"""Plain-dict representations of inventory records for the JSON API."""


def _iso(value):
    return value.isoformat() if value else None


def employee_summary(employee):
    if employee is None:
        return None
    return {
        "id": employee.pk,
        "firstName": employee.first_name,
        "lastName": employee.last_name,
        "email": employee.email,
        "department": employee.department,
    }


def clothing_type(ctype):
    return {
        "id": ctype.pk,
        "name": ctype.name,
        "category": ctype.category,
        "availableSizes": ctype.available_sizes,
        "imageUrl": ctype.image_url or None,
    }


def clothing_item(item):
    return {
        "id": str(item.pk),
        "internalId": item.internal_id,
        "qrCode": item.qr_code,
        "type": clothing_type(item.type),
        "size": item.size,
        "category": item.category,
        "condition": item.condition,
        "status": item.status,
        "currentHolderId": item.current_holder_id,
        "imageUrl": item.image_url or None,
        "purchaseDate": _iso(item.purchase_date),
        "purchasePrice": (
            str(item.purchase_price) if item.purchase_price is not None else None
        ),
        "retirementDate": _iso(item.retirement_date),
        "retirementReason": item.retirement_reason or None,
        "createdAt": _iso(item.created_at),
        "updatedAt": _iso(item.updated_at),
    }


def transaction(txn):
    return {
        "id": str(txn.pk),
        "type": txn.type,
        "employee": employee_summary(txn.employee),
        "clothingItem": clothing_item(txn.clothing_item),
        "issuedAt": _iso(txn.issued_at),
        "issuedBy": employee_summary(txn.issued_by),
        "conditionOnIssue": txn.condition_on_issue,
        "returnedAt": _iso(txn.returned_at),
        "returnedBy": employee_summary(txn.returned_by),
        "conditionOnReturn": txn.condition_on_return or None,
        "notes": txn.notes or None,
    }


def confirmation(conf, include_token=False):
    from .services.confirmations import items_of, transaction_ids_of

    data = {
        "id": str(conf.pk),
        "employee": employee_summary(conf.employee),
        "protocolType": conf.protocol_type,
        "items": items_of(conf),
        "transactionIds": transaction_ids_of(conf),
        "confirmed": conf.confirmed,
        "confirmedAt": _iso(conf.confirmed_at),
        "expiresAt": _iso(conf.expires_at),
        "expired": conf.is_expired,
        "emailSent": conf.email_sent,
        "emailSentAt": _iso(conf.email_sent_at),
        "emailError": conf.email_error or None,
        "createdAt": _iso(conf.created_at),
    }
    if include_token:
        data["token"] = conf.token
    return data
