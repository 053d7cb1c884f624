"""Build the instruction prompt sent to the generative backend.

WHAT: ``build_prompt`` assembles one Italian instruction string from the
command text, the reference date and a ``ParserConfig``.
WHY: the model only returns useful JSON when the contract (intents, title
rules, temporal table, examples, output shape) is spelled out every time.
HOW: each section is a small function; the builder joins the non-empty ones
with blank lines in a fixed order, title rules right after the command.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional, Union

from core.parser_config import DEFAULT_PARSER_CONFIG, ParserConfig
from core.parser_utils.datetime import month_bounds, week_bounds

logger = logging.getLogger(__name__)


def _introduction(today: str) -> str:
    return (
        "Sei un parser specializzato per un'applicazione di calendario.\n"
        "Analizza il seguente comando in italiano e convertilo in un formato JSON strutturato.\n"
        "\n"
        f"OGGI È: {today}\n"
        "\n"
        "I comandi possono essere di tipo:\n"
        '- create: creazione di un nuovo evento (es. "Crea", "Aggiungi", "Ricordami", "Pianifica")\n'
        '- read: visualizzazione di eventi esistenti (es. "Mostra", "Visualizza", "Fammi vedere")\n'
        '- update: modifica di un evento esistente (es. "Modifica", "Aggiorna", "Sposta", "Cambia")\n'
        '- delete: eliminazione di un evento (es. "Elimina", "Cancella", "Rimuovi")\n'
        '- query: interrogazione sul calendario (es. "Cerca", "Trova", domande come "Quali sono...", "Ci sono...")'
    )


def _title_instructions(include_event_type: bool) -> str:
    special = (
        "ISTRUZIONI CRITICHE PER L'ESTRAZIONE DEL TITOLO:\n"
        "- GESTIONE STRUTTURE SPECIALI (PRIORITÀ MASSIMA):\n"
        '  * Quando il comando contiene frasi come "chiamato X", "intitolato Y", "denominato Z", '
        "devi estrarre SOLO X, Y o Z come titolo.\n"
        '  * Esempio: "Crea un evento chiamato riunione di team per domani" → titolo: "riunione di team"\n'
        '  * Esempio: "Aggiungi un appuntamento intitolato visita medica alle 15" → titolo: "visita medica"\n'
        '  * Esempio: "Pianifica un incontro denominato colloquio annuale il 5 aprile" → titolo: "colloquio annuale"\n'
        '  * NON includere MAI nel titolo le parole "chiamato", "intitolato", "denominato" o simili.\n'
        '  * NON includere MAI nel titolo articoli o frasi che precedono queste parole (come "un evento chiamato").\n'
        "  * NON includere MAI nel titolo informazioni temporali o di contesto che seguono il titolo."
    )
    if include_event_type:
        generic = (
            "- GESTIONE PAROLE GENERICHE:\n"
            '  * MANTIENI nel titolo le parole come "appuntamento", "evento", "riunione" quando fanno parte del comando.\n'
            '  * Esempio: "Aggiungi appuntamento dal dentista" → titolo: "appuntamento dal dentista"\n'
            '  * Esempio: "Crea riunione di lavoro" → titolo: "riunione di lavoro"\n'
            '  * Per comandi "Ricordami di X", il titolo deve includere l\'azione: "ricordami di comprare il latte"'
        )
    else:
        generic = (
            "- GESTIONE PAROLE GENERICHE:\n"
            '  * RIMUOVI dal titolo le parole generiche come "appuntamento", "evento", "riunione", "incontro".\n'
            '  * Esempio: "Aggiungi appuntamento dal dentista" → titolo: "dal dentista"\n'
            '  * Esempio: "Crea riunione di lavoro" → titolo: "lavoro"\n'
            '  * Per comandi "Ricordami di X", il titolo deve essere solo: "comprare il latte"'
        )
    return f"{special}\n{generic}"


def _read_query_instructions() -> str:
    return (
        'DISTINZIONE TRA "read" E "query":\n'
        '- "read": visualizzazione diretta di eventi specifici o in un periodo definito.\n'
        '  * Esempi: "Mostra appuntamento col dentista", "Visualizza eventi di domani"\n'
        '  * Caratteristiche: riferimento a eventi noti, timeRange specifico, verbi come "mostra", "visualizza"\n'
        '- "query": ricerche, domande o richieste che richiedono filtraggio.\n'
        '  * Esempi: "Quali appuntamenti ho questa settimana?", "Cerca eventi con Mario", "Ci sono riunioni domani?"\n'
        '  * Caratteristiche: domande, termini di ricerca, uso di filtri, verbi come "cerca", "trova"'
    )


def _default_temporal_table(reference: date) -> List[str]:
    this_week = week_bounds(reference)
    next_week = week_bounds(reference, next_week=True)
    this_month = month_bounds(reference)
    next_month = month_bounds(reference, next_month=True)
    return [
        f'"oggi" → {reference.isoformat()} (00:00-23:59)',
        f'"domani" → {(reference + timedelta(days=1)).isoformat()} (00:00-23:59)',
        f'"dopodomani" → {(reference + timedelta(days=2)).isoformat()} (00:00-23:59)',
        f'"ieri" → {(reference - timedelta(days=1)).isoformat()} (00:00-23:59)',
        f'"questa settimana" → da {this_week[0].date().isoformat()} a {this_week[1].date().isoformat()}',
        f'"prossima settimana" → da {next_week[0].date().isoformat()} a {next_week[1].date().isoformat()}',
        f'"questo mese" → da {this_month[0].date().isoformat()} a {this_month[1].date().isoformat()}',
        f'"prossimo mese" → da {next_month[0].date().isoformat()} a {next_month[1].date().isoformat()}',
    ]


def _temporal_instructions(config: ParserConfig, reference: date) -> str:
    if config.temporal_expressions:
        mappings = [f'"{expression}" → {meaning}' for expression, meaning in config.temporal_expressions.items()]
    else:
        mappings = _default_temporal_table(reference)
    table = "\n".join(f"  * {line}" for line in mappings)
    return (
        "GESTIONE DEI RIFERIMENTI TEMPORALI:\n"
        "- Riferimenti assoluti: converti date esplicite in formato ISO 8601.\n"
        '  * "15 marzo 2025" → "2025-03-15"\n'
        '  * "15/03/2025" → "2025-03-15"\n'
        "- Riferimenti relativi: mappatura (rispetto alla data odierna):\n"
        f"{table}\n"
        "- Orari: converti sempre in formato 24 ore.\n"
        '  * "3 del pomeriggio" → "15:00"\n'
        '  * "9 di sera" → "21:00"\n'
        '  * "alle 8 di mattina" → "08:00"\n'
        '  * "mezzogiorno" → "12:00"\n'
        '  * "mezzanotte" → "00:00"'
    )


def _examples(config: ParserConfig) -> str:
    if not config.example_commands:
        return ""
    return "ESEMPI DI COMANDI CORRETTI:\n\n" + "\n\n".join(config.example_commands)


def _output_format(config: ParserConfig) -> str:
    return (
        "Rispondi ESCLUSIVAMENTE con un JSON valido che include:\n"
        "{\n"
        '  "intent": "l\'intento del comando (create, read, update, delete, query)",\n'
        '  "confidence": "livello di confidenza nell\'interpretazione (0.0-1.0)",\n'
        '  "eventData": {\n'
        '    "title": "titolo dell\'evento (estratto secondo le regole specificate)",\n'
        '    "description": "descrizione dettagliata o null",\n'
        '    "location": "luogo dell\'evento o null",\n'
        '    "participants": ["lista", "di", "partecipanti"] o array vuoto\n'
        "  },\n"
        '  "timeData": {\n'
        '    "startDate": "data di inizio in formato ISO o null",\n'
        '    "startTime": "ora di inizio in formato ISO o null",\n'
        '    "endDate": "data di fine in formato ISO o null",\n'
        '    "endTime": "ora di fine in formato ISO o null",\n'
        f'    "duration": "durata in minuti o null (default: {config.default_duration})",\n'
        '    "recurrence": "daily, weekly, monthly, weekly;BYDAY=MO (o altro giorno) oppure null"\n'
        "  },\n"
        '  "queryData": {\n'
        '    "timeRange": {\n'
        '      "start": "inizio range temporale in formato ISO o null",\n'
        '      "end": "fine range temporale in formato ISO o null"\n'
        "    },\n"
        '    "searchTerm": "termine di ricerca o null",\n'
        '    "filterType": "filtro per tipo di evento o null",\n'
        f'    "limit": "numero massimo di risultati (default {config.default_limit})"\n'
        "  },\n"
        '  "ambiguities": ["possibili ambiguità nel comando"],\n'
        '  "missingInfo": ["informazioni mancanti necessarie"]\n'
        "}\n"
        "\n"
        "Non includere ASSOLUTAMENTE nessun altro testo oltre al JSON valido."
    )


def build_prompt(
    text: str,
    reference_date: Union[date, datetime, str, None] = None,
    config: Optional[ParserConfig] = None,
) -> str:
    """Return the full prompt for ``text`` relative to ``reference_date``.

    ``reference_date`` may be a date, a datetime or an ISO ``YYYY-MM-DD``
    string; ``None`` means today.  ``config=None`` uses the built-in defaults.
    """

    config = config or DEFAULT_PARSER_CONFIG
    reference = _as_date(reference_date)
    sections = [
        _introduction(reference.isoformat()),
        f'Comando: "{text}"',
        _title_instructions(config.include_event_type_in_title),
        _read_query_instructions(),
        _temporal_instructions(config, reference),
        _examples(config),
        _output_format(config),
    ]
    prompt = "\n\n".join(section for section in sections if section)
    logger.debug("Built prompt (%d chars) for command of %d chars", len(prompt), len(text))
    return prompt


def _as_date(value: Union[date, datetime, str, None]) -> date:
    if value is None:
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


__all__ = ["build_prompt"]
