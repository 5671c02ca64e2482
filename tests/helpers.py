from typing import Dict, List

from models import Row

LEDGER_A = """transaction_id,date,amount,description
T1,2024-01-05,120.00,Coffee
T2,2024-01-06,"1,000.00",Rent
T3,2024-01-07,50,Groceries
T4,2024-01-08,75,Books
"""

LEDGER_B = """transaction_id,date,amount,description
T1,01/05/2024,120,Coffee
T2,2024-01-06,1000,Rent
T3,2024-01-07,55,Groceries
T5,2024-01-09,10,Parking
"""


def make_rows(records: List[Dict[str, str]]) -> List[Row]:
    """Rows with 1-based ids in list order."""
    return [Row(row_id=i, values=dict(record)) for i, record in enumerate(records, start=1)]
