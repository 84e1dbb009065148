import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from offerte_tool.engine.offerte_engine import OfferteEngine
from offerte_tool.engine.models import CalculationInput

def debug():
    engine = OfferteEngine()
    
    print("Loaded Reference Data:")
    for key, value in engine.status().items():
        print(f"  {key}: {value}")
    
    # Test Case: grondwerk + bestrating, beperkt bereikbaar
    print("\n--- Testing grondwerk + bestrating ---")
    calc_input = CalculationInput.from_dict({
        "bereikbaarheid": "beperkt",
        "scopes": [
            {
                "scope": "grondwerk",
                "posten": [
                    {"key": "ontgraven standaard", "hoeveelheid": 40},
                    {"key": "p01", "hoeveelheid": 16, "soort": "materiaal"},
                ],
            },
            {
                "scope": "bestrating",
                "parameters": {"snijwerk": "hoog"},
                "posten": [
                    {"key": "klinkers leggen", "hoeveelheid": 40},
                    {"key": "p02", "hoeveelheid": 2, "soort": "materiaal"},
                ],
            },
        ],
    })
    
    result = engine.calculate(calc_input, include_overhead=True)
    if not result.ok:
        print(f"Calculation failed: {result.error.to_dict()}")
        return
    
    for regel in result.regels:
        print(f"\n{regel.id} {regel.omschrijving}: {regel.hoeveelheid} {regel.eenheid} = €{regel.totaal:.2f}")
        if regel.trace:
            print(regel.get_trace_text())
    
    print("\nTotals:")
    for key, value in result.totalen.to_dict().items():
        print(f"  {key}: {value}")

if __name__ == "__main__":
    debug()
