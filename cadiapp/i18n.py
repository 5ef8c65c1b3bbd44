from __future__ import annotations

import re
from typing import Optional

from fastapi import Request


DEFAULT_LANGUAGE = "es"

TRANSLATIONS: dict[str, dict] = {
    "es": {
        "common": {
            "success": "Operación exitosa",
            "updated": "Actualizado correctamente",
        },
        "errors": {
            "badRequest": "Solicitud inválida",
            "validation": "Error de validación",
            "unauthorized": "No autorizado",
            "forbidden": "No tienes permiso para realizar esta acción",
            "notFound": "Recurso no encontrado",
            "internal": "Error interno del servidor",
        },
        "validation": {
            "required": "Faltan campos obligatorios",
            "invalidFormat": "Formato inválido",
            "invalidTime": "Formato de hora inválido. Use HH:mm (ej: 10:00)",
            "endBeforeStart": "La hora de fin debe ser posterior a la hora de inicio",
            "invalidSlot": "Franja horaria inválida: {{slot}}",
            "invalidDayOfWeek": "Día de la semana inválido: {{day}}",
            "invalidRating": "La calificación debe estar entre 1 y 5",
            "invalidTimezone": "Zona horaria inválida: {{timezone}}",
        },
        "auth": {"invalidCredentials": "Credenciales inválidas"},
        "user": {"notFound": "Usuario no encontrado"},
        "golfer": {"notFound": "Perfil de golfista no encontrado"},
        "club": {
            "notFound": "Club no encontrado",
            "notAssigned": "El caddie no trabaja en el club {{clubId}}",
            "created": "Club creado",
            "updated": "Club actualizado",
            "deleted": "Club eliminado",
            "inUse": "El club tiene reservas o caddies asignados",
        },
        "caddie": {
            "notFound": "Caddie no encontrado",
            "pending": "El caddie aún no fue aprobado",
            "notAvailable": "El caddie no está disponible en ese horario",
            "approved": "Caddie aprobado",
            "rejected": "Caddie rechazado",
            "availabilityUpdated": "Disponibilidad actualizada",
        },
        "booking": {
            "created": "Reserva creada exitosamente",
            "accepted": "Reserva aceptada",
            "rejected": "Reserva rechazada",
            "started": "Servicio iniciado",
            "completed": "Servicio completado",
            "cancelled": "Reserva cancelada",
            "rated": "Calificación registrada",
            "notFound": "Reserva no encontrada",
            "alreadyBooked": "El caddie ya tiene una reserva en ese horario",
            "invalidStatus": "La reserva no admite esta operación en su estado actual",
            "cannotCancel": "La reserva ya no puede cancelarse",
            "invalidQR": "Código QR inválido",
            "qrMismatch": "El código QR no corresponde a esta reserva",
            "qrInvalidTimestamp": "El QR no contiene un timestamp válido",
            "qrDateMismatch": "El código QR no corresponde a la fecha de esta reserva",
            "qrMissing": "La reserva no tiene código QR",
            "alreadyRated": "Esta reserva ya fue calificada",
        },
        "payment": {
            "created": "Pago creado",
            "liquidated": "Pago liquidado",
            "notFound": "Pago no encontrado",
            "bookingNotAccepted": "La reserva debe estar aceptada para pagar",
            "alreadyPaid": "La reserva ya fue pagada",
            "creationFailed": "No se pudo crear el pago",
            "notCompleted": "El pago no está completado",
            "alreadyLiquidated": "El pago ya fue liquidado",
        },
    },
    "en": {
        "common": {
            "success": "Success",
            "updated": "Updated successfully",
        },
        "errors": {
            "badRequest": "Bad request",
            "validation": "Validation error",
            "unauthorized": "Unauthorized",
            "forbidden": "You are not allowed to perform this action",
            "notFound": "Resource not found",
            "internal": "Internal server error",
        },
        "validation": {
            "required": "Missing required fields",
            "invalidFormat": "Invalid format",
            "invalidTime": "Invalid time format. Use HH:mm (e.g. 10:00)",
            "endBeforeStart": "End time must be after start time",
            "invalidSlot": "Invalid time slot: {{slot}}",
            "invalidDayOfWeek": "Invalid day of week: {{day}}",
            "invalidRating": "Rating must be between 1 and 5",
            "invalidTimezone": "Invalid time zone: {{timezone}}",
        },
        "auth": {"invalidCredentials": "Invalid credentials"},
        "user": {"notFound": "User not found"},
        "golfer": {"notFound": "Golfer profile not found"},
        "club": {
            "notFound": "Club not found",
            "notAssigned": "Caddie does not work at club {{clubId}}",
            "created": "Club created",
            "updated": "Club updated",
            "deleted": "Club deleted",
            "inUse": "Club has bookings or assigned caddies",
        },
        "caddie": {
            "notFound": "Caddie not found",
            "pending": "Caddie has not been approved yet",
            "notAvailable": "Caddie is not available at that time",
            "approved": "Caddie approved",
            "rejected": "Caddie rejected",
            "availabilityUpdated": "Availability updated",
        },
        "booking": {
            "created": "Booking created successfully",
            "accepted": "Booking accepted",
            "rejected": "Booking rejected",
            "started": "Service started",
            "completed": "Service completed",
            "cancelled": "Booking cancelled",
            "rated": "Rating saved",
            "notFound": "Booking not found",
            "alreadyBooked": "Caddie already has a booking at that time",
            "invalidStatus": "The booking does not allow this operation in its current status",
            "cannotCancel": "The booking can no longer be cancelled",
            "invalidQR": "Invalid QR code",
            "qrMismatch": "The QR code does not belong to this booking",
            "qrInvalidTimestamp": "The QR code has no valid timestamp",
            "qrDateMismatch": "The QR code does not match this booking's date",
            "qrMissing": "The booking has no QR code",
            "alreadyRated": "This booking has already been rated",
        },
        "payment": {
            "created": "Payment created",
            "liquidated": "Payment liquidated",
            "notFound": "Payment not found",
            "bookingNotAccepted": "Booking must be accepted before payment",
            "alreadyPaid": "Booking has already been paid",
            "creationFailed": "Payment could not be created",
            "notCompleted": "Payment is not completed",
            "alreadyLiquidated": "Payment has already been liquidated",
        },
    },
}

_PARAM_RE = re.compile(r"\{\{(\w+)\}\}")


def is_valid_language(lang: Optional[str]) -> bool:
    return bool(lang) and lang in TRANSLATIONS


def translate(key: str, lang: Optional[str] = DEFAULT_LANGUAGE, params: Optional[dict] = None) -> str:
    """Resolve a dotted key ("booking.created"). Unknown keys come back unchanged."""
    language = lang if is_valid_language(lang) else DEFAULT_LANGUAGE
    value = TRANSLATIONS[language]
    for part in str(key or "").split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            return key
    if not isinstance(value, str):
        return key
    if params:
        return _PARAM_RE.sub(lambda m: str(params.get(m.group(1), m.group(0))), value)
    return value


def detect_language(query_lang: Optional[str], header_lang: Optional[str], accept_language: Optional[str]) -> str:
    """Explicit ?lang= wins, then X-App-Language, then the first supported Accept-Language entry."""
    if is_valid_language(query_lang):
        return query_lang
    if is_valid_language(header_lang):
        return header_lang
    for part in str(accept_language or "").split(","):
        code = part.strip().split(";")[0].split("-")[0].strip().lower()
        if is_valid_language(code):
            return code
    return DEFAULT_LANGUAGE


def get_language(request: Request) -> str:
    return detect_language(
        request.query_params.get("lang"),
        request.headers.get("x-app-language"),
        request.headers.get("accept-language"),
    )
