"""
파일 파서 (격리 실행 컨텍스트에서 실행)

parse_file 은 별도 프로세스/스레드에서 호출되며, 예외를 던지지 않고
항상 하나의 메시지(dict)를 반환합니다:
    {"success": True, "rows": [...]} 또는 {"success": False, "error": "..."}
반환값은 값 타입(str/숫자/datetime)만 포함하여 pickle 가능해야 합니다.
"""

from typing import Any

import pandas as pd
from openpyxl import load_workbook

from ingest.exception import ParseExecutionError

CSV = "csv"
SPREADSHEET = "spreadsheet"


def parse_csv(path: str) -> list[dict[str, Any]]:
    """헤더 이름을 키로 하는 행 목록 (모든 값은 문자열)"""
    try:
        frame = pd.read_csv(path, dtype=str, keep_default_na=False, skip_blank_lines=True)
    except pd.errors.EmptyDataError:
        return []
    return frame.to_dict(orient="records")


def parse_spreadsheet(path: str) -> list[dict[str, Any]]:
    """
    첫 번째 시트만 읽음

    첫 행을 헤더로, 이후 각 행의 셀을 위치 기준으로 헤더에 매핑합니다.
    빈 셀은 키를 만들지 않으며 값이 하나도 없는 행은 건너뜁니다.
    """
    workbook = load_workbook(path, read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)

        header_row = next(rows, None)
        if header_row is None:
            return []
        headers = [str(h).strip() if h is not None else None for h in header_row]

        results = []
        for values in rows:
            record = {}
            for index, value in enumerate(values):
                if value is None or index >= len(headers) or headers[index] is None:
                    continue
                record[headers[index]] = value
            if record:
                results.append(record)
        return results
    finally:
        workbook.close()


def parse_file(path: str, file_format: str) -> dict[str, Any]:
    """격리 컨텍스트 진입점"""
    try:
        if file_format == CSV:
            rows = parse_csv(path)
        elif file_format == SPREADSHEET:
            rows = parse_spreadsheet(path)
        else:
            raise ParseExecutionError(f"Unsupported file type: {file_format}")
    except Exception as e:
        return {"success": False, "error": str(e) or type(e).__name__}

    return {"success": True, "rows": rows}
