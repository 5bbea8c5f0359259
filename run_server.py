import uvicorn

if __name__ == "__main__":
    print("\n" + "="*70)
    print("   🚀 Сервер расписания клиники запущен")
    print("="*70)
    print(f"   📍 URL:         http://127.0.0.1:8001")
    print(f"   💚 Healthcheck: http://127.0.0.1:8001/healthcheck")
    print(f"   📅 API:         http://127.0.0.1:8001/scheduler")
    print("="*70 + "\n")

    uvicorn.run("clinicflow.main:app", host="127.0.0.1", port=8001, reload=True)
